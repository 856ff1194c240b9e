"""Error taxonomy shared by the token, permission and persistence layers.

HTTP mapping lives in `noodle.main`; these classes carry no status codes
so that services and repositories stay independent of the web layer.
"""


class NoodleError(Exception):
    """Base class for all domain errors raised by the backend."""


class InvalidToken(NoodleError):
    """Bearer token is missing, malformed, badly signed or expired."""


class PermissionDenied(NoodleError):
    """A gate evaluated to false for the current session."""

    def __init__(self, gate: str = ""):
        super().__init__(f"permission denied by gate {gate}" if gate else "permission denied")
        self.gate = gate


class NotFoundError(NoodleError):
    """A required lookup matched no row."""


class PersistError(NoodleError):
    """A transactional write failed and was rolled back."""
