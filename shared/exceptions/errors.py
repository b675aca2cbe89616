"""Error taxonomy of the knowledge base engine.

Every error raised on purpose by the engine derives from EngineError, so the HTTP
layer can translate the whole family with a single exception handler.
"""


class EngineError(Exception):
    """Base class for all engine errors."""

    retryable: bool = False


class InvalidInput(EngineError, ValueError):
    """Caller error: malformed category, zero top_k, overlap >= window, ..."""


class UnsupportedFormat(EngineError):
    """The text extractor has no strategy for the given content type."""


class ExtractionFailed(EngineError):
    """The text extractor recognised the format but could not read the content."""


class EmbeddingUnavailable(EngineError):
    """Transient embedder failure (timeout, connection refused, 5xx). Retryable."""

    retryable = True


class EmbeddingRejected(EngineError):
    """The embedder refused the input (empty, too long, bad dimension). Not retryable."""


class AccessDenied(EngineError):
    """A requester tried to read another user's memory partition."""


class NotFound(EngineError):
    """Unknown document or memory id."""


class StorageUnavailable(EngineError):
    """A store backend could not be reached or refused the operation."""


class GenerationUnavailable(EngineError):
    """The answer generator could not be reached or returned no usable reply."""

    retryable = True
