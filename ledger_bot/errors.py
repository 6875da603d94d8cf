"""
Error taxonomy for the ledger pipeline.

Services raise these; the dialog machine catches them at the
boundary and turns each one into a user-facing message. Nothing
here is allowed to escape a user's event handler.
"""


class LedgerBotError(Exception):
    """Base class for every error the pipeline knows how to report."""


class ValidationError(LedgerBotError):
    """A required field is missing or empty. The user must resubmit."""


class ConflictError(LedgerBotError):
    """A ledger with the same title already exists."""


class NotFoundError(LedgerBotError):
    """A referenced ledger or user no longer exists."""


class ServiceUnavailable(LedgerBotError):
    """An external collaborator (classifier, sheet store, database) is unreachable."""


class ParseFailure(LedgerBotError):
    """The entry parser could not produce a structured entry."""


class MalformedResponse(ParseFailure):
    """The classifier answered, but not with the JSON object we asked for."""


class ClassifierUnavailable(ParseFailure, ServiceUnavailable):
    """The classifier could not be reached or timed out."""


class LowConfidenceError(LedgerBotError):
    """
    The classifier understood the request but is not sure enough.

    Carries the parsed entry so the dialog can show the classifier's
    reasoning when asking the user to rephrase.
    """

    def __init__(self, entry, message: str = "Entry below confidence gate"):
        super().__init__(message)
        self.entry = entry

    @property
    def reasoning(self) -> str:
        return getattr(self.entry, "reasoning", "") or ""


class PartialFailure(LedgerBotError):
    """
    The ledger record was written but its sheet could not be set up.

    The record has been deleted again (compensated=True) unless the
    compensation itself failed, in which case the orphan sweep will
    remove it later.
    """

    def __init__(self, title: str, cause: BaseException, compensated: bool = True):
        super().__init__(f"Ledger '{title}' was not fully created: {cause}")
        self.title = title
        self.cause = cause
        self.compensated = compensated


class AppendFailed(LedgerBotError):
    """The entry could not be read from or appended to the ledger sheet."""

    def __init__(self, ledger_title: str, cause: BaseException):
        super().__init__(f"Failed to add entry to '{ledger_title}': {cause}")
        self.ledger_title = ledger_title
        self.cause = cause
