"""ProactiveScheduler: unsolicited check-in messages on a timer.

The scheduler only reads local state and emits events; delivering the
message into a session and displaying a notification is up to whoever
listens.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from .notify import Notification, NotificationSink
from .templates import pick_message

if TYPE_CHECKING:
    from ..logging import JSONLLogger
    from ..personas import PersonaRegistry

logger = logging.getLogger(__name__)

CHECK_INTERVAL_SECONDS = 60.0


class FrequencyTier(Enum):
    """How often proactive messages may be sent."""

    HOURLY = "hourly"
    FEW_HOURS = "few_hours"
    DAILY = "daily"
    WEEKLY = "weekly"

    @property
    def interval(self) -> timedelta:
        return _INTERVALS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]


_INTERVALS = {
    FrequencyTier.HOURLY: timedelta(hours=1),
    FrequencyTier.FEW_HOURS: timedelta(hours=3),
    FrequencyTier.DAILY: timedelta(days=1),
    FrequencyTier.WEEKLY: timedelta(days=7),
}

_LABELS = {
    FrequencyTier.HOURLY: "Every hour",
    FrequencyTier.FEW_HOURS: "Every few hours",
    FrequencyTier.DAILY: "Once daily",
    FrequencyTier.WEEKLY: "Weekly",
}


def _minute_of_day(value: str) -> int:
    """Parse ``HH:MM`` into minutes after midnight."""
    hours, minutes = value.strip().split(":")
    h, m = int(hours), int(minutes)
    if not (0 <= h < 24 and 0 <= m < 60):
        raise ValueError(f"Time of day out of range: {value!r}")
    return h * 60 + m


def _local_naive(moment: datetime) -> datetime:
    """Normalize to naive local time so all comparisons agree."""
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


@dataclass
class QuietHours:
    """Local time-of-day window with no proactive messages. May wrap midnight."""

    start: str = "22:00"
    end: str = "08:00"

    def contains(self, moment: datetime) -> bool:
        """Check whether a moment falls inside the window (both ends inclusive).

        Malformed bounds mean there are no quiet hours.
        """
        try:
            start = _minute_of_day(self.start)
            end = _minute_of_day(self.end)
        except (ValueError, AttributeError) as e:
            logger.warning("Ignoring malformed quiet hours %s-%s: %s", self.start, self.end, e)
            return False

        current = moment.hour * 60 + moment.minute
        if start <= end:
            return start <= current <= end
        return current >= start or current <= end


@dataclass
class SchedulerState:
    """Settings and counters for proactive messaging.

    ``total_sent`` only increases and ``last_sent_at`` only moves forward.
    """

    enabled: bool = False
    frequency: FrequencyTier = FrequencyTier.FEW_HOURS
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    last_sent_at: datetime | None = None
    total_sent: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "enabled": self.enabled,
            "frequency": self.frequency.value,
            "quiet_hours": {"start": self.quiet_hours.start, "end": self.quiet_hours.end},
            "last_sent_at": self.last_sent_at.isoformat() if self.last_sent_at else None,
            "total_sent": self.total_sent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchedulerState:
        """Create from dictionary. Unknown or invalid values use defaults."""
        defaults = cls()

        try:
            frequency = FrequencyTier(data.get("frequency", defaults.frequency.value))
        except ValueError:
            frequency = defaults.frequency

        quiet = data.get("quiet_hours") or {}
        if not isinstance(quiet, dict):
            quiet = {}

        last_sent_at = None
        if data.get("last_sent_at"):
            try:
                last_sent_at = _local_naive(datetime.fromisoformat(str(data["last_sent_at"])))
            except ValueError:
                logger.warning("Ignoring invalid last_sent_at: %r", data["last_sent_at"])

        total_sent = data.get("total_sent", 0)
        if not isinstance(total_sent, int) or total_sent < 0:
            total_sent = 0

        return cls(
            enabled=bool(data.get("enabled", defaults.enabled)),
            frequency=frequency,
            quiet_hours=QuietHours(
                start=str(quiet.get("start", defaults.quiet_hours.start)),
                end=str(quiet.get("end", defaults.quiet_hours.end)),
            ),
            last_sent_at=last_sent_at,
            total_sent=total_sent,
        )


def load_state(path: Path) -> SchedulerState:
    """Load scheduler state from a JSON file, or defaults if unavailable."""
    if not path.exists():
        return SchedulerState()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load scheduler state from %s: %s", path, e)
        return SchedulerState()

    if not isinstance(data, dict):
        logger.warning("Invalid scheduler state in %s, using defaults", path)
        return SchedulerState()
    return SchedulerState.from_dict(data)


def save_state(state: SchedulerState, path: Path) -> None:
    """Save scheduler state to a JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(state.to_dict(), f, indent=2)


@dataclass
class ProactiveEvent:
    """An unsolicited message ready to be delivered."""

    persona_id: str
    message: str
    created_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: f"proactive_{uuid.uuid4().hex[:12]}")


@dataclass
class SchedulerConfig:
    """Configuration for the proactive scheduler.

    Attributes:
        state_path: JSON file the state is persisted to. In-memory if None.
        check_interval: Seconds between ticks of the background loop.
        persona_id: Persona used when no persona source is given.
    """

    state_path: Path | None = None
    check_interval: float = CHECK_INTERVAL_SECONDS
    persona_id: str = "sam"


EventListener = Callable[[ProactiveEvent], Any]

_SETTINGS = {"enabled", "frequency", "quiet_hours", "quiet_start", "quiet_end"}


class ProactiveScheduler:
    """Decides when to send a proactive message and emits it.

    Example:
        scheduler = ProactiveScheduler(SchedulerConfig(state_path=path))
        scheduler.add_listener(lambda event: sessions.deliver_proactive(event))
        scheduler.update_settings(enabled=True, frequency="hourly")
        scheduler.start()
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        notifiers: list[NotificationSink] | None = None,
        personas: PersonaRegistry | None = None,
        persona_source: Callable[[], str] | None = None,
        rng: random.Random | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            config: Scheduler configuration. Uses defaults if None.
            notifiers: Sinks that display a notification for each message.
            personas: Registry used for notification titles of custom personas.
            persona_source: Returns the persona to speak as at fire time.
            rng: Random source for template selection.
            event_log: Optional structured event logger.
        """
        self.config = config or SchedulerConfig()
        self.notifiers = list(notifiers or [])
        self.personas = personas
        self.persona_source = persona_source
        self.rng = rng or random.Random()
        self.event_log = event_log
        self._listeners: list[EventListener] = []
        self._task: asyncio.Task | None = None

        if self.config.state_path is not None:
            self.state = load_state(self.config.state_path)
        else:
            self.state = SchedulerState()

    def add_listener(self, listener: EventListener) -> None:
        """Register a callback (sync or async) for every emitted event."""
        self._listeners.append(listener)

    def _save(self) -> None:
        if self.config.state_path is not None:
            save_state(self.state, self.config.state_path)

    def current_persona(self) -> str:
        if self.persona_source is not None:
            return self.persona_source()
        return self.config.persona_id

    def in_quiet_hours(self, now: datetime | None = None) -> bool:
        """Check whether ``now`` (local time) is inside the quiet window."""
        return self.state.quiet_hours.contains(_local_naive(now or datetime.now()))

    def should_fire(self, now: datetime | None = None) -> bool:
        """Enabled, outside quiet hours, and the frequency interval has passed."""
        now = _local_naive(now or datetime.now())
        if not self.state.enabled or self.in_quiet_hours(now):
            return False
        if self.state.last_sent_at is None:
            return True
        return now - self.state.last_sent_at >= self.state.frequency.interval

    async def tick(self, now: datetime | None = None) -> ProactiveEvent | None:
        """Evaluate the schedule once, firing if it is time.

        Returns:
            The emitted event, or None if nothing fired.
        """
        now = _local_naive(now or datetime.now())
        if not self.should_fire(now):
            return None
        return await self.fire(self.current_persona(), now)

    def notification_title(self, persona_id: str) -> str:
        if persona_id == "sam":
            return "SAM"
        if persona_id == "corporate":
            return "Assistant"
        if self.personas is not None:
            persona = self.personas.get(persona_id)
            if persona is not None:
                return persona.name
        return persona_id

    async def fire(self, persona_id: str | None = None, now: datetime | None = None) -> ProactiveEvent:
        """Send one proactive message now, regardless of the schedule.

        Updates the counters, then hands the event to every listener and a
        notification to every sink. A failing listener or sink is logged
        and does not stop the others.
        """
        persona_id = persona_id or self.current_persona()
        now = _local_naive(now or datetime.now())
        text = pick_message(persona_id, self.rng)

        if self.state.last_sent_at is None or now > self.state.last_sent_at:
            self.state.last_sent_at = now
        self.state.total_sent += 1
        self._save()

        event = ProactiveEvent(persona_id=persona_id, message=text, created_at=now)
        logger.info("Proactive message for %s: %s", persona_id, text)

        for listener in self._listeners:
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Proactive listener failed")

        notification = Notification(title=self.notification_title(persona_id), body=text)
        delivered = 0
        for sink in self.notifiers:
            try:
                if await sink.notify(notification):
                    delivered += 1
            except Exception:
                logger.exception("Notification sink %s failed", type(sink).__name__)

        if self.event_log:
            self.event_log.log_proactive(
                persona_id, total_sent=self.state.total_sent, delivered=delivered
            )
        return event

    def update_settings(self, **changes: Any) -> SchedulerState:
        """Merge settings into the state and persist it.

        Accepts ``enabled``, ``frequency`` (tier or its value),
        ``quiet_hours`` (QuietHours or ``{start, end}``), ``quiet_start``
        and ``quiet_end``. Time strings are stored as given.
        """
        unknown = set(changes) - _SETTINGS
        if unknown:
            raise ValueError(f"Unknown scheduler settings: {sorted(unknown)}")

        if "enabled" in changes:
            self.state.enabled = bool(changes["enabled"])
        if "frequency" in changes:
            self.state.frequency = FrequencyTier(changes["frequency"])
        if "quiet_hours" in changes:
            quiet = changes["quiet_hours"]
            if isinstance(quiet, dict):
                quiet = QuietHours(
                    start=quiet.get("start", self.state.quiet_hours.start),
                    end=quiet.get("end", self.state.quiet_hours.end),
                )
            self.state.quiet_hours = quiet
        if "quiet_start" in changes:
            self.state.quiet_hours.start = changes["quiet_start"]
        if "quiet_end" in changes:
            self.state.quiet_hours.end = changes["quiet_end"]

        self._save()
        return self.state

    async def run(self) -> None:
        """Tick forever at the configured interval."""
        while True:
            try:
                await self.tick()
                await asyncio.sleep(self.config.check_interval)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Proactive tick failed")
                await asyncio.sleep(self.config.check_interval)

    def start(self) -> None:
        """Start the background loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        """Stop the background loop."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
