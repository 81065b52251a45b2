"""Track stage contract.

Enforces the guarantee that after enrichment, the track carries monotonic
distance and elapsed time with one row per input fix.
"""

import numpy as np
import pandas as pd
from echos.contracts.base import require

ENRICHED_COLUMNS = ("lat", "lon", "time", "cumulative_distance_m", "elapsed_s", "speed_ms")


def assert_enriched_track(enriched: pd.DataFrame, n_input: int) -> None:
    """Enforce track enrichment contract.

    Parameters
    ----------
    enriched : pd.DataFrame
        Output of ``enrich_trackpoints``.
    n_input : int
        Number of points that went into enrichment.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    for column in ENRICHED_COLUMNS:
        require(
            column in enriched.columns,
            f"Track contract violated: missing '{column}' column"
        )

    require(
        len(enriched) == n_input,
        f"Track contract violated: {len(enriched)} enriched points for {n_input} inputs"
    )

    distance = enriched["cumulative_distance_m"].to_numpy()
    elapsed = enriched["elapsed_s"].to_numpy()
    speed = enriched["speed_ms"].to_numpy()

    require(
        distance[0] == 0.0 and elapsed[0] == 0.0,
        "Track contract violated: first point must have zero distance and elapsed time"
    )
    require(
        bool(np.all(np.diff(distance) >= 0)),
        "Track contract violated: cumulative distance decreases"
    )
    require(
        bool(np.all(np.diff(elapsed) >= 0)),
        "Track contract violated: elapsed time decreases"
    )
    require(
        bool(np.all(speed >= 0)),
        "Track contract violated: negative speed"
    )
