"""Volume stage contract.

Enforces the guarantee that a finalized volume is a finite float32 field
in [0, 1] whose shape matches its declared dimensions.
"""

import numpy as np
import xarray as xr
from echos.contracts.base import require


def assert_volume_finalized(volume: xr.Dataset) -> None:
    """Enforce normalization stage contract.

    Parameters
    ----------
    volume : xr.Dataset
        Finalized volume with an ``intensity`` variable on
        ``("track", "depth", "lateral")``.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(
        "intensity" in volume.data_vars,
        "Volume contract violated: missing 'intensity' variable"
    )
    data = volume["intensity"]
    require(
        data.dims == ("track", "depth", "lateral"),
        f"Volume contract violated: dims are {data.dims}, expected ('track', 'depth', 'lateral')"
    )
    require(
        data.dtype == np.float32,
        f"Volume contract violated: dtype is {data.dtype}, expected float32"
    )

    dim_x, dim_y, dim_z = volume.attrs["dimensions"]
    require(
        data.shape == (dim_z, dim_y, dim_x),
        f"Volume contract violated: shape {data.shape} does not match dimensions "
        f"{volume.attrs['dimensions']}"
    )

    values = data.values
    require(
        bool(np.all(np.isfinite(values))),
        "Volume contract violated: NaN or infinite voxels"
    )
    if values.size:
        require(
            float(values.min()) >= 0.0 and float(values.max()) <= 1.0,
            "Volume contract violated: voxels outside [0, 1]"
        )
