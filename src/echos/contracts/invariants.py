"""Formal pipeline invariants.

This file documents what each stage MUST produce. Use it as a reviewer
anchor and system reference.
"""

PIPELINE_INVARIANTS = {
    "track": [
        "Enriched track has one row per input fix, same order",
        "cumulative_distance_m and elapsed_s start at 0 and never decrease",
        "speed_ms is >= 0; speeds under the immobility threshold are exactly 0",
        "interpolate_distance is monotonic and exact at sample times",
    ],

    "mapping": [
        "One FrameMapping per frame, sorted by frame_index",
        "distance_m lies within [0, total track distance]",
    ],

    "preprocessing": [
        "Intensity is a 2D float32 array of shape (height, width)",
        "All values lie in [0, 1]",
        "Same input and settings give bit-identical output",
    ],

    "accumulation": [
        "Frames are sorted by index before accumulation",
        "Collected frame indices equal the mapping indices exactly",
        "Spatial accumulation is a pure sum: order of frames does not matter",
    ],

    "volume": [
        "intensity dims are ('track', 'depth', 'lateral'), X fastest on disk",
        "dimensions attr is (lateral, depth, track) and matches the array shape",
        "All voxels finite and within [0, 1]; zero weight gives exactly 0",
    ],
}

# Which stages are optional vs required
STAGE_REQUIREMENTS = {
    "track": "REQUIRED",
    "mapping": "REQUIRED",
    "preprocessing": "REQUIRED",
    "accumulation": "REQUIRED",
    "volume": "REQUIRED",
}
