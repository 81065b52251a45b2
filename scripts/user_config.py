"""ECHOS User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the reconstruction. Advanced settings live in echos.schemas.param.ParamConfig.

Usage:
    python scripts/run_reconstruction.py scripts/user_config.py frames.npz track.csv
    python scripts/run_reconstruction.py scripts/user_config.py frames.npz track.csv --view-mode instrument
"""

CONFIG = {
    # ========================================================================
    # RUN
    # ========================================================================
    "VIEW_MODE": "spatial",        # "instrument" or "spatial"
    "BASE_DIR": "./output",        # All outputs go here
    "VIDEO_FILE": "survey.mp4",    # Recorded in the session file
    "GPX_FILE": "survey.gpx",
    "LOG_LEVEL": "INFO",

    # ========================================================================
    # CALIBRATION
    # ========================================================================
    "DEPTH_MAX_M": 10.0,           # Depth shown at the bottom of the sonar display
    "FPS_EXTRACTION": 2.0,         # Frames extracted per second of video
    "Y_STEP_M": 0.1,               # Track resampling step (instrument mode)
    "CROP": (0, 0, 640, 480),      # x, y, width, height of the sonar display

    # ========================================================================
    # SYNC
    # ========================================================================
    "SYNC_OFFSET_S": 0.0,          # Positive = GPS starts after video
    "TRIM_START_S": 0.0,
    "TRIM_END_S": 0.0,

    # ========================================================================
    # BEAM & GRID (spatial mode)
    # ========================================================================
    "BEAM_ANGLE_DEG": 20.0,
    "NEAR_FIELD_M": 0.3,
    "GRID_RESOLUTION": (96, 128, 96),  # lateral, track, depth

    # ========================================================================
    # PREPROCESSING
    # ========================================================================
    "GAMMA": 0.85,
    "DENOISE_STRENGTH": 0.2,
    "GAUSSIAN_SIGMA": 0.8,
    "DEBLOCK_STRENGTH": 0.3,
}
