"""Error taxonomy for question generation jobs."""

from __future__ import annotations


class GenerationError(Exception):
  """Base class for all generation pipeline failures."""


class ValidationError(GenerationError, ValueError):
  """Raised when a job specification is rejected before the job starts."""


class ContentAcquisitionError(GenerationError):
  """Raised when a source cannot be enumerated or a page cannot be fetched."""


class TitleResolutionError(GenerationError):
  """Raised when a title cannot be resolved against the external catalog."""


class ProviderError(GenerationError):
  """Base class for failures scoped to a single provider call."""


class UnknownModel(ProviderError):
  """Raised when a model id is not present in the model catalog."""

  def __init__(self, model_id: str) -> None:
    super().__init__(f"Unknown model: {model_id}")
    self.model_id = model_id


class ProviderTimeout(ProviderError):
  """Raised when a provider call exceeds its timeout."""

  def __init__(self, model_id: str, timeout_seconds: float) -> None:
    super().__init__(f"Provider call for {model_id} timed out after {timeout_seconds:g}s")
    self.model_id = model_id
    self.timeout_seconds = timeout_seconds


class ProviderInvalidOutput(ProviderError):
  """Raised when a provider returns output that cannot be normalized."""


class ProviderUnavailable(ProviderError):
  """Raised when a provider client cannot be built or the remote call fails."""


class SchemaViolation(GenerationError):
  """Raised by the normalizer when output cannot be repaired into the question schema."""


class LedgerUnavailable(GenerationError):
  """Raised when the processed-unit ledger backend cannot be reached."""


class StorageError(GenerationError):
  """Raised when generated questions cannot be persisted."""
