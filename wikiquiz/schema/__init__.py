"""ORM models registered on the shared declarative base."""

from .ledger import ProcessedUnit
from .questions import GeneratedQuestionRow

__all__ = ["GeneratedQuestionRow", "ProcessedUnit"]
