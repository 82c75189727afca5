# rumlab/core/errors.py
from typing import Optional


class RumlabError(Exception):
    """Base class for every error raised by rumlab."""


class ValidationError(RumlabError):
    """The caller supplied a missing or malformed input. Reported as a client error."""


class AnalysisError(RumlabError):
    """
    A synthetic analysis failed for a reason that is fatal to the request.

    The underlying exception is kept on ``cause`` (and chained as ``__cause__``
    by the orchestrator) so the HTTP layer can surface it as diagnostic detail.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    @property
    def details(self) -> Optional[str]:
        if self.cause is None:
            return None
        return str(self.cause) or type(self.cause).__name__


class SessionAcquisitionError(AnalysisError):
    """The browser could not be launched or configured."""


class NavigationError(AnalysisError):
    """The target page did not finish loading within the timeout."""


class InstrumentationError(AnalysisError):
    """The in-page long-task observer could not be installed or read."""
