"""Error kinds raised by the course and round engines.

Every error carries a stable ``kind`` and the HTTP status the API layer
renders it with. Storage exceptions are translated before they reach callers.
"""


class GolfError(Exception):
    """Base for all domain errors."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(GolfError):
    """Malformed coordinates or an out-of-range numeric field."""

    kind = "invalid_argument"
    status_code = 400


class NotFound(GolfError):
    """Course, round or user does not exist or is inactive."""

    kind = "not_found"
    status_code = 404


class Forbidden(GolfError):
    kind = "forbidden"
    status_code = 403


class RoundFull(GolfError):
    kind = "round_full"
    status_code = 409


class InvalidRoster(GolfError):
    kind = "invalid_roster"
    status_code = 400


class DuplicateParticipant(GolfError):
    kind = "duplicate_participant"
    status_code = 409


class NotParticipating(GolfError):
    kind = "not_participating"
    status_code = 400


class InvalidStateTransition(GolfError):
    """Mutating a round whose status no longer allows it."""

    kind = "invalid_state_transition"
    status_code = 409


class Conflict(GolfError):
    """Optimistic-concurrency version mismatch that survived all retries."""

    kind = "conflict"
    status_code = 409
