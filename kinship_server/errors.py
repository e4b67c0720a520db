"""Error kinds raised by the family-graph operations."""


class KinshipError(Exception):
    """Base class for all domain errors."""


class NotFound(KinshipError):
    """A referenced person, user or anchor does not exist in the family."""


class Conflict(KinshipError):
    """An email is already claimed by a user in another family."""


class InvalidInput(KinshipError):
    """Malformed id, missing required field, or unsupported role/gender value."""


class PermissionDenied(KinshipError):
    """The caller's role does not allow the requested operation."""


class PartialPropagationFailure(KinshipError):
    """A multi-record relationship update stopped part way.

    The graph is left as it was after the last completed step; nothing is
    rolled back. ``completed`` lists the steps that were applied and
    ``failed`` names the step that raised.
    """

    def __init__(self, operation: str, completed: list[str], failed: str, cause: Exception):
        self.operation = operation
        self.completed = list(completed)
        self.failed = failed
        self.cause = cause
        super().__init__(
            f"{operation} stopped at '{failed}' after {len(self.completed)} "
            f"completed step(s): {cause}"
        )
