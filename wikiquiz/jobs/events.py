"""Event channels for observing generation jobs."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, Protocol

JobEventType = Literal["log", "progress", "questionsGenerated", "questionsScored", "completed", "error"]

logger = logging.getLogger(__name__)


def job_channel(job_id: str, event: JobEventType, kind: str = "job") -> str:
  """Return the channel name for a run event, e.g. ``job:123:progress`` or ``review:7:completed``."""
  return f"{kind}:{job_id}:{event}"


@dataclass(frozen=True)
class PublishedEvent:
  """An event as delivered to subscribers."""

  channel: str
  payload: Any
  published_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class EventSink(Protocol):
  """Fire-and-forget publish contract."""

  def publish(self, channel: str, payload: Any) -> None:
    """Publish a payload on a channel without blocking the caller."""


class RecordingEventSink:
  """Sink that keeps every event in memory, in publish order."""

  def __init__(self) -> None:
    self._lock = threading.Lock()
    self._events: list[PublishedEvent] = []

  def publish(self, channel: str, payload: Any) -> None:
    with self._lock:
      self._events.append(PublishedEvent(channel=channel, payload=payload))

  @property
  def events(self) -> list[PublishedEvent]:
    with self._lock:
      return list(self._events)

  def payloads(self, channel: str) -> list[Any]:
    return [event.payload for event in self.events if event.channel == channel]


class BroadcastEventSink:
  """In-process fan-out to subscriber queues.

  Each subscriber owns a bounded queue; when it is full the event is dropped for that
  subscriber so a slow consumer never stalls a job.
  """

  def __init__(self, *, max_queue_size: int = 256) -> None:
    self._max_queue_size = max_queue_size
    self._lock = threading.Lock()
    self._subscribers: dict[int, tuple[str, asyncio.Queue[PublishedEvent]]] = {}
    self._next_id = 0

  def publish(self, channel: str, payload: Any) -> None:
    event = PublishedEvent(channel=channel, payload=payload)
    with self._lock:
      targets = list(self._subscribers.values())
    for prefix, queue in targets:
      if not channel.startswith(prefix):
        continue
      try:
        queue.put_nowait(event)
      except asyncio.QueueFull:
        logger.warning("Dropping event on %s for a slow subscriber", channel)

  @contextmanager
  def subscribe(self, prefix: str = "") -> Iterator[asyncio.Queue[PublishedEvent]]:
    """Register a queue receiving every event whose channel starts with `prefix`."""
    queue: asyncio.Queue[PublishedEvent] = asyncio.Queue(maxsize=self._max_queue_size)
    with self._lock:
      subscriber_id = self._next_id
      self._next_id += 1
      self._subscribers[subscriber_id] = (prefix, queue)
    try:
      yield queue
    finally:
      with self._lock:
        self._subscribers.pop(subscriber_id, None)

  @property
  def subscriber_count(self) -> int:
    with self._lock:
      return len(self._subscribers)


class JobEventEmitter:
  """Publishes events for one run, swallowing sink failures."""

  def __init__(self, sink: EventSink, job_id: str, *, kind: str = "job") -> None:
    self._sink = sink
    self._job_id = job_id
    self._kind = kind

  def emit(self, event: JobEventType, payload: Any) -> None:
    channel = job_channel(self._job_id, event, self._kind)
    try:
      self._sink.publish(channel, payload)
    except Exception:  # noqa: BLE001
      # Observers are best-effort; a broken sink must not fail the job step.
      logger.warning("Event sink failed to publish %s", channel, exc_info=True)
