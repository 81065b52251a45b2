"""Pipeline contracts - fail-fast enforcement of stage invariants.

Key principle:
- Pydantic validates config correctness
- Contracts validate pipeline correctness
- Algorithms resolve numeric edge cases locally
"""

from echos.contracts.failure import (
    ContractViolation,
    InputError,
    FormatError,
    TransportError,
)
from echos.contracts.base import require
from echos.contracts.track import assert_enriched_track
from echos.contracts.frames import assert_preprocessed_frame, assert_frames_match_mappings
from echos.contracts.volume import assert_volume_finalized
from echos.contracts.invariants import PIPELINE_INVARIANTS, STAGE_REQUIREMENTS

__all__ = [
    "ContractViolation",
    "InputError",
    "FormatError",
    "TransportError",
    "require",
    "assert_enriched_track",
    "assert_preprocessed_frame",
    "assert_frames_match_mappings",
    "assert_volume_finalized",
    "PIPELINE_INVARIANTS",
    "STAGE_REQUIREMENTS",
]
