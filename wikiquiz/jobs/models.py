"""Domain models for question generation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

JobStatus = Literal["running", "stopping", "completed", "error"]
LogSeverity = Literal["info", "success", "warning", "error"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "error"})


def _now() -> datetime:
  return datetime.now(UTC)


@dataclass(frozen=True)
class LogEntry:
  """One append-only line in a job log."""

  timestamp: datetime
  message: str
  severity: LogSeverity = "info"

  def as_dict(self) -> dict[str, Any]:
    return {"timestamp": self.timestamp.isoformat(), "message": self.message, "severity": self.severity}


@dataclass(frozen=True)
class JobSpec:
  """Validated inputs for a generation run."""

  source_id: str
  group_selectors: tuple[str, ...]
  individual_locators: tuple[str, ...]
  call_budget: int
  target_question_density: int
  model_id: str
  prompt_template: str | None = None
  title_name: str | None = None
  temperature: float | None = None


@dataclass
class Job:
  """In-memory run state owned by the orchestrator."""

  id: str
  spec: JobSpec
  status: JobStatus = "running"
  progress_percent: int = 0
  calls_made: int = 0
  questions_generated: int = 0
  units_total: int = 0
  units_done: int = 0
  units_skipped: int = 0
  units_failed: int = 0
  started_at: datetime = field(default_factory=_now)
  finished_at: datetime | None = None
  cancel_requested: bool = False
  title_id: int | None = None
  canonical_title: str | None = None
  error: str | None = None
  log: list[LogEntry] = field(default_factory=list)

  @property
  def call_budget(self) -> int:
    return self.spec.call_budget

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES

  @property
  def duration_ms(self) -> int | None:
    if self.finished_at is None:
      return None
    return int((self.finished_at - self.started_at).total_seconds() * 1000)

  def append_log(self, message: str, severity: LogSeverity = "info") -> LogEntry:
    entry = LogEntry(timestamp=_now(), message=message, severity=severity)
    self.log.append(entry)
    return entry

  def snapshot(self) -> dict[str, Any]:
    """Serialize the job for API responses and terminal events."""
    return {
      "id": self.id,
      "status": self.status,
      "progressPercent": self.progress_percent,
      "callsMade": self.calls_made,
      "callBudget": self.call_budget,
      "questionsGenerated": self.questions_generated,
      "unitsTotal": self.units_total,
      "unitsDone": self.units_done,
      "unitsSkipped": self.units_skipped,
      "unitsFailed": self.units_failed,
      "startedAt": self.started_at.isoformat(),
      "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
      "durationMs": self.duration_ms,
      "cancelRequested": self.cancel_requested,
      "sourceId": self.spec.source_id,
      "modelId": self.spec.model_id,
      "titleId": self.title_id,
      "canonicalTitle": self.canonical_title,
      "error": self.error,
      "log": [entry.as_dict() for entry in self.log],
    }
