"""
Error Taxonomy

Two layers of exceptions:

Provider errors
    Raised by the leaf clients (embedding model, vector index, note store,
    completion model) when the underlying service fails.

Pipeline errors
    Raised by the query pipeline. Each carries the stage that aborted and a
    stable ``kind`` string so the HTTP layer can report a single failed
    result without inspecting the cause.
"""

from __future__ import annotations


class ProviderError(RuntimeError):
    """Base class for failures of an external collaborator."""


class EmbeddingFailure(ProviderError):
    """Embedding provider failed or returned an unusable vector."""


class VectorIndexError(ProviderError):
    """Vector index upsert/delete/query failed."""


class DocumentStoreError(ProviderError):
    """Primary note store failed."""


class CompletionFailure(ProviderError):
    """Completion model failed or returned no text."""


class PipelineError(Exception):
    """
    A query pipeline run aborted at ``stage``.

    No partial answer is ever attached: the caller gets the stage and kind only.
    """

    kind: str = "PipelineError"
    stage: str = "unknown"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.stage}] {self.kind}: {self.message}"


class InvalidQuery(PipelineError):
    kind = "InvalidQuery"
    stage = "validate"


class EmbeddingUnavailable(PipelineError):
    kind = "EmbeddingUnavailable"
    stage = "embed"


class IndexUnavailable(PipelineError):
    kind = "IndexUnavailable"
    stage = "search"


class StoreUnavailable(PipelineError):
    kind = "StoreUnavailable"
    stage = "hydrate"


class CompletionUnavailable(PipelineError):
    kind = "CompletionUnavailable"
    stage = "complete"
