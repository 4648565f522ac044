"""In-memory registry of background runs."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Generic, Protocol, TypeVar


class TrackedRun(Protocol):
  id: str
  started_at: datetime

  @property
  def is_terminal(self) -> bool: ...


RunT = TypeVar("RunT", bound=TrackedRun)


class JobRegistry(Generic[RunT]):
  """Holds every run submitted in this process, including finished ones."""

  def __init__(self) -> None:
    self._lock = threading.Lock()
    self._runs: dict[str, RunT] = {}

  def add(self, run: RunT) -> None:
    with self._lock:
      if run.id in self._runs:
        raise ValueError(f"Run {run.id} is already registered.")
      self._runs[run.id] = run

  def get(self, run_id: str) -> RunT | None:
    with self._lock:
      return self._runs.get(run_id)

  def recent(self, limit: int) -> list[RunT]:
    """Return up to `limit` runs, newest first."""
    with self._lock:
      runs = list(self._runs.values())
    runs.sort(key=lambda run: run.started_at, reverse=True)
    return runs[:limit]

  def active(self) -> list[RunT]:
    with self._lock:
      return [run for run in self._runs.values() if not run.is_terminal]
