"""
Timed drill engine.

``TimedDrillSession`` holds the countdown state for one drill problem and
scores it exactly once per run. ``DrillTimer`` is the asyncio ticker that
drives it one second at a time.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .models import TimedDrillData
from .validator import parse_answer

logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """Structured logging for drill timer lifecycle events."""

    @staticmethod
    def log_timer_start(owner_id: str, interval: float) -> None:
        logger.info(
            f"Timer lifecycle: START - Owner {owner_id}, Interval {interval}s",
            extra={
                'event_type': 'timer_start',
                'owner_id': owner_id,
                'interval': interval,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(owner_id: str, remaining_time: int, total_duration: int) -> None:
        """Log countdown progress (throttled to avoid spam)."""
        if remaining_time % 10 == 0 or remaining_time <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100 if total_duration else 100.0
            logger.debug(
                f"Timer lifecycle: UPDATE - Owner {owner_id}, Remaining {remaining_time}s ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'timer_update',
                    'owner_id': owner_id,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(owner_id: str, completion_type: str, ticks: int) -> None:
        """Log timer completion (natural expiry or cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Owner {owner_id}, Type {completion_type}, Ticks {ticks}",
            extra={
                'event_type': 'timer_completed',
                'owner_id': owner_id,
                'completion_type': completion_type,
                'ticks': ticks,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(owner_id: str, from_state: str, to_state: str, reason: str = None) -> None:
        logger.info(
            f"Timer lifecycle: STATE_TRANSITION - Owner {owner_id}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'owner_id': owner_id,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(owner_id: str, error_type: str, error_message: str, operation: str) -> None:
        logger.error(
            f"Timer lifecycle: ERROR - Owner {owner_id}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'owner_id': owner_id,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_stale_tick(owner_id: str, details: str) -> None:
        """Log a tick that arrived for a timer that is no longer current."""
        logger.warning(
            f"Timer lifecycle: STALE_TICK - Owner {owner_id}: {details}",
            extra={
                'event_type': 'timer_stale_tick',
                'owner_id': owner_id,
                'details': details,
                'timestamp': time.time()
            }
        )


class DrillTimer:
    """Repeating one-second ticker backed by an asyncio task."""

    def __init__(self, owner_id: str = None, interval: float = 1.0):
        self._task: Optional[asyncio.Task] = None
        self._is_cancelled = False
        self._owner_id = owner_id
        self._interval = interval
        self._ticks = 0

    def start(self, tick_callback: Callable[[], bool]) -> None:
        """
        Schedule the ticker on the running event loop.

        Args:
            tick_callback: Called once per interval; return False to stop

        Raises:
            RuntimeError: If called without a running event loop or twice
        """
        if self._task is not None:
            raise RuntimeError(f"Timer for {self._owner_id} already started")
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self.run(tick_callback))

    async def run(self, tick_callback: Callable[[], bool]) -> None:
        """Tick until the callback returns False or the timer is cancelled."""
        TimerLifecycleLogger.log_timer_start(self._owner_id, self._interval)

        try:
            while not self._is_cancelled:
                await asyncio.sleep(self._interval)
                if self._is_cancelled:
                    break
                self._ticks += 1
                if not tick_callback():
                    break

            completion_type = "cancelled" if self._is_cancelled else "natural_expiry"
            TimerLifecycleLogger.log_timer_completion(self._owner_id, completion_type, self._ticks)

        except asyncio.CancelledError:
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_completion(self._owner_id, "asyncio_cancelled", self._ticks)
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                self._owner_id,
                "tick_execution_error",
                str(e),
                "run"
            )
            raise

    def cancel(self) -> None:
        """Stop ticking; safe to call more than once."""
        if self._is_cancelled:
            return
        self._is_cancelled = True

        if self._task and not self._task.done():
            self._task.cancel()
            TimerLifecycleLogger.log_timer_state_transition(
                self._owner_id, "running", "cancelled", "task cancelled"
            )
        else:
            TimerLifecycleLogger.log_timer_state_transition(
                self._owner_id, "idle", "cancelled", "no active task"
            )

    @property
    def is_cancelled(self) -> bool:
        return self._is_cancelled

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._is_cancelled

    @property
    def ticks(self) -> int:
        return self._ticks


class DrillState(Enum):
    """Lifecycle of a timed drill run."""
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


@dataclass(frozen=True)
class DrillSummary:
    """Result of scoring a drill run."""
    correct: int
    total: int
    message: str
    credited_points: int


class TimedDrillSession:
    """
    Countdown state for one timed drill problem.

    ``credit`` is called with the number of correct items the first time a
    run is scored with at least one correct item.
    """

    def __init__(self, data: TimedDrillData, duration_sec: int, credit: Callable[[int], Any]):
        self.data = data
        self.duration_sec = duration_sec
        self._credit = credit
        self.remaining_seconds = duration_sec
        self.running = False
        self.finished = False
        self.scored = False
        self.credited = False
        self._answers: Dict[str, str] = {}
        self.summary: Optional[DrillSummary] = None

    @property
    def state(self) -> DrillState:
        if self.finished:
            return DrillState.FINISHED
        if self.running:
            return DrillState.RUNNING
        return DrillState.IDLE

    @property
    def answers(self) -> Dict[str, str]:
        return dict(self._answers)

    def start(self) -> None:
        """Begin a fresh run, discarding answers and flags from any earlier run."""
        self._answers = {}
        self.remaining_seconds = self.duration_sec
        self.finished = False
        self.scored = False
        self.credited = False
        self.summary = None
        self.running = True
        logger.info(f"Timed drill started: {len(self.data.items)} items, {self.duration_sec}s")

    def tick(self) -> Optional[DrillSummary]:
        """
        Advance the countdown by one second.

        Returns:
            The summary if this tick ended the run, otherwise None
        """
        if not self.running or self.finished:
            return None

        self.remaining_seconds = max(0, self.remaining_seconds - 1)
        TimerLifecycleLogger.log_timer_update("timed-drill", self.remaining_seconds, self.duration_sec)

        if self.remaining_seconds == 0:
            return self.finalize()
        return None

    def finish_early(self) -> Optional[DrillSummary]:
        """Stop a running drill now and score it."""
        if not self.running or self.finished:
            return None
        return self.finalize()

    def update_answer(self, item_id: str, text: str) -> bool:
        """
        Record the learner's text for one item.

        Returns:
            True if the answer was stored, False if the drill is not running
            or the item id is unknown
        """
        if not self.running or self.finished:
            return False
        if self.data.get_item(item_id) is None:
            logger.warning(f"Ignoring answer for unknown drill item {item_id!r}")
            return False
        self._answers[item_id] = text
        return True

    def correct_count(self) -> int:
        return sum(
            1 for item in self.data.items
            if parse_answer(self._answers.get(item.id, "").strip()) == item.answer
        )

    def finalize(self) -> Optional[DrillSummary]:
        """
        Stop the run and score it once. No answers are taken afterwards.

        Returns:
            The summary, or None if this run was already scored
        """
        self.running = False
        self.finished = True
        if self.scored:
            return None

        total = len(self.data.items)
        correct = self.correct_count()
        credited_points = 0

        if correct > 0 and not self.credited:
            self.credited = True
            credited_points = correct
            self._credit(correct)

        self.scored = True
        self.summary = DrillSummary(
            correct=correct,
            total=total,
            message=f"Time up! You got {correct} out of {total} correct.",
            credited_points=credited_points,
        )
        logger.info(f"Timed drill scored: {correct}/{total}, credited {credited_points}")
        return self.summary
