"""Frame stage contracts.

Enforces the guarantees that a preprocessed frame is a finite [0,1] field
of the declared size, and that the collected frame set lines up with the
mapping list before accumulation.
"""

import numpy as np
from echos.contracts.base import require


def assert_preprocessed_frame(frame) -> None:
    """Enforce preprocessing stage contract.

    Parameters
    ----------
    frame : PreprocessedFrame
        Output of ``preprocess_frame``.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    intensity = frame.intensity
    require(
        intensity.ndim == 2,
        f"Frame contract violated: intensity has {intensity.ndim} dims, expected 2"
    )
    require(
        intensity.shape == (frame.height, frame.width),
        f"Frame contract violated: intensity shape {intensity.shape} != "
        f"({frame.height}, {frame.width})"
    )
    require(
        intensity.dtype == np.float32,
        f"Frame contract violated: intensity dtype is {intensity.dtype}, expected float32"
    )
    if intensity.size:
        require(
            float(intensity.min()) >= 0.0 and float(intensity.max()) <= 1.0,
            f"Frame contract violated: frame {frame.index} intensity outside [0, 1]"
        )


def assert_frames_match_mappings(frame_indices, mapping_indices) -> None:
    """Enforce that every mapped frame arrived exactly once.

    Parameters
    ----------
    frame_indices : sequence of int
        Indices of the frames collected during the run, sorted.
    mapping_indices : sequence of int
        ``frame_index`` of each mapping, sorted.

    Raises
    ------
    ContractViolation
        If the two index sets differ.
    """
    frames = list(frame_indices)
    mappings = list(mapping_indices)
    missing = sorted(set(mappings) - set(frames))
    unexpected = sorted(set(frames) - set(mappings))
    require(
        not missing,
        f"Frame contract violated: no frame received for mapped indices {missing[:10]}"
    )
    require(
        not unexpected,
        f"Frame contract violated: frames {unexpected[:10]} have no mapping"
    )
    require(
        frames == mappings,
        "Frame contract violated: frame and mapping indices differ in order or multiplicity"
    )
