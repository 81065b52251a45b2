"""Centralized failure policy for contract violations and bad input.

Contracts fail fast, loud, and once. Pipeline bugs raise ContractViolation;
caller mistakes raise InputError; malformed files raise FormatError.
"""


class ContractViolation(RuntimeError):
    """Raised when a pipeline contract is violated.

    This indicates a bug in pipeline logic, not bad user input. It means a
    stage did not produce the invariants it promised.

    Key distinction:
    - ValidationError: config error (handled by Pydantic)
    - InputError: caller handed the pipeline unusable data
    - FormatError: an imported file is malformed
    - ContractViolation: pipeline bug (programmer error)
    """
    pass


class InputError(ValueError):
    """Raised when the caller supplies data the pipeline cannot work with.

    Examples are a track with fewer than two points, an empty frame set,
    or a frame count that differs from the mapping count.
    """
    pass


class FormatError(ValueError):
    """Raised when a session or volume file is malformed.

    The message names the offending field so the caller can fix the file.
    No partially populated result is ever returned alongside it.
    """
    pass


class TransportError(RuntimeError):
    """Raised on the caller side when the coordinator reports a failed run.

    The coordinator itself never raises across the message boundary; it
    emits an error event and this exception carries its message.
    """
    pass
