"""Domain exceptions raised by the generation services.

Routes translate these into HTTP responses; the worker lets the retryable
ones propagate so the queue's retry policy applies.
"""


class GenerationError(Exception):
    """Base class for every blog generation error."""

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class InvalidGenerationConfig(GenerationError):
    """The submitted configuration is out of range or malformed."""


class JobAlreadyRunningError(GenerationError):
    """The user already has a live continuous schedule."""


class JobNotFoundError(GenerationError):
    """No job with the requested id exists in the queue."""


class ProgressResetConflict(GenerationError):
    """A live job still uses the (media type, sort) cursor being reset."""


class CatalogError(GenerationError):
    """The catalog provider failed or rejected the request."""

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message, retryable=retryable)


class ContentGenerationError(GenerationError):
    """The language model provider failed or returned nothing usable."""

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message, retryable=retryable)
