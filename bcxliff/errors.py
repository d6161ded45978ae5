"""Typed errors raised at the collaborator boundaries."""


class BcXliffError(Exception):
    """Base class for all errors raised by this project."""


class InvalidInputError(BcXliffError):
    pass


class TranslationError(BcXliffError):
    """The translation backend failed. `backend_message` keeps the original text."""

    def __init__(self, message: str, backend_message: str = ""):
        super().__init__(message)
        self.backend_message = backend_message or message


class ModelLoadingError(TranslationError):
    """Transient warm-up condition reported by the backend."""


class BackendNotConfiguredError(TranslationError):
    pass
