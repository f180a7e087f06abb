"""
In-Memory Event Report

Reference report implementation that keeps activities, errors and the
ordered event stream in memory. Intended for tests and local
inspection; it neither persists nor batches anything.
"""

import threading
from contextvars import ContextVar
from datetime import datetime, UTC
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field
from structlog import get_logger

from reportproxy.errors import UnknownActivityError

logger = get_logger(__name__)


class ActivityStatus(str, Enum):
    """Lifecycle state of a recorded activity."""

    STARTED = "started"
    """Start recorded; still running."""

    FINISHED = "finished"
    """Start and matching finish recorded."""

    FAILED = "failed"
    """An error was recorded while the activity was open."""


class ReportEventType(str, Enum):
    """Kinds of events a report receives."""

    ACTIVITY_STARTED = "activity_started"
    ACTIVITY_FINISHED = "activity_finished"
    ERROR = "error"


class ActivityRecord(BaseModel):
    """One reported call, bounded by a start and (on success) a finish."""

    activity_id: UUID = Field(
        description="Correlation token handed out on start"
    )

    qualified_name: str = Field(
        description="Member identifier in '<Type>::<Member>' form"
    )

    arguments: tuple[Any, ...] = Field(
        default=(),
        description="Positional argument values, in order"
    )

    keyword_arguments: dict[str, Any] = Field(
        default_factory=dict,
        description="Keyword-only argument values"
    )

    status: ActivityStatus = Field(
        default=ActivityStatus.STARTED,
        description="Current lifecycle state"
    )

    started_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the activity started"
    )

    finished_at: datetime | None = Field(
        default=None,
        description="When the activity finished or failed"
    )

    @property
    def duration_ms(self) -> float | None:
        """Elapsed time between start and finish, if finished."""
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds() * 1000


class ErrorRecord(BaseModel):
    """A failure reported through ``record_error``."""

    activity_id: UUID | None = Field(
        default=None,
        description="Activity that was open when the error was recorded"
    )

    error: Any = Field(
        exclude=True,
        description="The exception object as raised"
    )

    error_type: str = Field(
        description="Qualified class name of the exception"
    )

    message: str = Field(
        default="",
        description="String form of the exception"
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the error was recorded"
    )


class ReportEvent(BaseModel):
    """Entry of the ordered event stream."""

    event_type: ReportEventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    activity_id: UUID | None = None
    qualified_name: str | None = None
    error_type: str | None = None


class MemoryEventReport:
    """
    Event report that keeps everything in memory.

    Tokens are random UUIDs. Finishing a token that was never started
    by this report, or one already closed, raises UnknownActivityError.
    All mutations are serialized by an internal lock, so one report can
    be shared by concurrent callers.

    ``record_error`` carries no token. The error is attributed to the
    innermost activity still open in the caller's context (thread or
    asyncio task), which is then marked FAILED.

    Usage:
        report = MemoryEventReport()
        token = report.record_activity_started("Phone::call", "123456")
        report.record_activity_finished(token)

        assert report.activities[0].status == ActivityStatus.FINISHED
    """

    def __init__(self, name: str = "default"):
        """
        Initialize an empty report.

        Args:
            name: Label for this report (e.g. the test or run it belongs to).
        """
        self.name = name
        self._lock = threading.Lock()
        self._activities: dict[UUID, ActivityRecord] = {}
        self._errors: list[ErrorRecord] = []
        self._events: list[ReportEvent] = []
        self._open: ContextVar[tuple[UUID, ...]] = ContextVar(
            f"memory_report_open_{name}", default=()
        )

    # =========================================================================
    # EventReport contract
    # =========================================================================

    def record_activity_started(
        self,
        qualified_name: str,
        /,
        *arguments: Any,
        **keyword_arguments: Any,
    ) -> UUID:
        """
        Begin tracking an activity.

        Args:
            qualified_name: Member identifier, '<Type>::<Member>'.
            *arguments: Positional argument values of the call.
            **keyword_arguments: Keyword-only argument values of the call.

        Returns:
            The correlation token for this activity.
        """
        record = ActivityRecord(
            activity_id=uuid4(),
            qualified_name=qualified_name,
            arguments=arguments,
            keyword_arguments=keyword_arguments,
        )
        with self._lock:
            self._activities[record.activity_id] = record
            self._events.append(ReportEvent(
                event_type=ReportEventType.ACTIVITY_STARTED,
                timestamp=record.started_at,
                activity_id=record.activity_id,
                qualified_name=qualified_name,
            ))
        self._open.set(self._open.get() + (record.activity_id,))
        return record.activity_id

    def record_activity_finished(self, token: UUID) -> None:
        """
        Close out a started activity.

        Args:
            token: Token returned by record_activity_started.

        Raises:
            UnknownActivityError: If the token is unknown, already
                finished or already failed.
        """
        now = datetime.now(UTC)
        with self._lock:
            record = self._activities.get(token)
            if record is None:
                raise UnknownActivityError(f"Unknown activity token: {token!r}")
            if record.status != ActivityStatus.STARTED:
                raise UnknownActivityError(
                    f"Activity already {record.status.value}: {token!r}"
                )

            record.status = ActivityStatus.FINISHED
            record.finished_at = now
            self._events.append(ReportEvent(
                event_type=ReportEventType.ACTIVITY_FINISHED,
                timestamp=now,
                activity_id=token,
                qualified_name=record.qualified_name,
            ))
        self._close(token)

    def record_error(self, error: BaseException) -> None:
        """
        Record a failure.

        Args:
            error: The exception raised by the failing call.
        """
        error_type = f"{type(error).__module__}.{type(error).__qualname__}"
        open_ids = self._open.get()
        activity_id = open_ids[-1] if open_ids else None
        record = ErrorRecord(
            error=error,
            activity_id=activity_id,
            error_type=error_type,
            message=str(error),
        )
        with self._lock:
            activity = self._activities.get(activity_id) if activity_id else None
            if activity is not None and activity.status == ActivityStatus.STARTED:
                activity.status = ActivityStatus.FAILED
                activity.finished_at = record.timestamp
            self._errors.append(record)
            self._events.append(ReportEvent(
                event_type=ReportEventType.ERROR,
                timestamp=record.timestamp,
                activity_id=activity_id,
                qualified_name=activity.qualified_name if activity else None,
                error_type=error_type,
            ))
        if activity_id is not None:
            self._close(activity_id)

        logger.debug(
            "report_error_recorded",
            report=self.name,
            error_type=error_type,
            activity_id=str(activity_id) if activity_id else None,
        )

    def _close(self, token: UUID) -> None:
        open_ids = self._open.get()
        if token in open_ids:
            index = len(open_ids) - 1 - open_ids[::-1].index(token)
            self._open.set(open_ids[:index] + open_ids[index + 1:])

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def activities(self) -> list[ActivityRecord]:
        """Activities in start order."""
        with self._lock:
            return list(self._activities.values())

    @property
    def open_activities(self) -> list[ActivityRecord]:
        """Activities that were started and neither finished nor failed."""
        return [a for a in self.activities if a.status == ActivityStatus.STARTED]

    @property
    def failed_activities(self) -> list[ActivityRecord]:
        """Activities closed by an error."""
        return [a for a in self.activities if a.status == ActivityStatus.FAILED]

    @property
    def errors(self) -> list[ErrorRecord]:
        """Recorded errors in order."""
        with self._lock:
            return list(self._errors)

    @property
    def events(self) -> list[ReportEvent]:
        """Every event received, in arrival order."""
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        """Drop all recorded data."""
        with self._lock:
            self._activities.clear()
            self._errors.clear()
            self._events.clear()
        self._open.set(())

    @property
    def stats(self) -> dict:
        """Get report statistics."""
        with self._lock:
            statuses = [a.status for a in self._activities.values()]
            return {
                "activity_count": len(statuses),
                "finished_count": statuses.count(ActivityStatus.FINISHED),
                "failed_count": statuses.count(ActivityStatus.FAILED),
                "error_count": len(self._errors),
            }
