"""
Quiz engine core logic for the Trivia Quiz.
Handles question selection, ordering, scoring and the timed answer reveal.
"""
import random
import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from .models import Question, SessionConfig

# Set up logger for timer operations
logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """Structured logging for feedback timer lifecycle events."""

    @staticmethod
    def log_timer_scheduled(session_label: str, generation: int, delay: float) -> None:
        """Log a reveal timer being scheduled."""
        logger.debug(
            f"Timer lifecycle: SCHEDULED - Session {session_label}, Generation {generation}, Delay {delay:.2f}s",
            extra={
                'event_type': 'timer_scheduled',
                'session': session_label,
                'generation': generation,
                'delay': delay,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_completion(session_label: str, generation: int, completion_type: str) -> None:
        """Log timer completion (natural expiry or cancellation)."""
        logger.debug(
            f"Timer lifecycle: COMPLETED - Session {session_label}, Generation {generation}, Type {completion_type}",
            extra={
                'event_type': 'timer_completed',
                'session': session_label,
                'generation': generation,
                'completion_type': completion_type,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(session_label: str, error_type: str, error_message: str, operation: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Session {session_label}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'session': session_label,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_race_condition_detected(session_label: str, details: str) -> None:
        """Log race condition detection."""
        logger.warning(
            f"Timer lifecycle: RACE_CONDITION - Session {session_label}: {details}",
            extra={
                'event_type': 'timer_race_condition',
                'session': session_label,
                'details': details,
                'timestamp': time.time()
            }
        )


def list_categories(catalog: Sequence[Question]) -> List[str]:
    """Distinct categories in the catalog, in first-seen order."""
    return list(dict.fromkeys(q.category for q in catalog))


def list_difficulties(catalog: Sequence[Question]) -> List[str]:
    """Distinct difficulties in the catalog, in first-seen order."""
    return list(dict.fromkeys(q.difficulty for q in catalog))


def count_matching(catalog: Sequence[Question], config: SessionConfig) -> int:
    """Number of playable questions for a category/difficulty pair."""
    return sum(1 for q in catalog if matches(q, config))


def matches(question: Question, config: SessionConfig) -> bool:
    return question.category == config.category and question.difficulty == config.difficulty


class QuestionSelector:
    """Filters the catalog and produces a randomized play sequence."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize the selector.

        Args:
            rng: Random source used for shuffling; seed it for reproducible order
        """
        self._rng = rng or random.Random()

    def select(self, catalog: Sequence[Question], config: SessionConfig) -> Tuple[Question, ...]:
        """
        Select the questions matching a config in uniformly random order.

        Args:
            catalog: Full question catalog (never modified)
            config: Category and difficulty to filter on

        Returns:
            Tuple of matching questions, empty if nothing matches
        """
        selected = [q for q in catalog if matches(q, config)]
        # random.Random.shuffle is an in-place Fisher-Yates shuffle
        self._rng.shuffle(selected)
        return tuple(selected)


class ScoreTracker:
    """Counts correct answers for the active session."""

    def __init__(self):
        self._score = 0

    def record_answer(self, correct: bool) -> None:
        if correct:
            self._score += 1

    def current_score(self) -> int:
        return self._score

    def reset(self) -> None:
        self._score = 0


class FeedbackCycle:
    """
    Timed reveal after an answer.

    Holds the session in its reveal window for ``reveal_delay`` seconds, then
    fires the advance callback exactly once. The callback receives the
    generation it was scheduled under so the owner can ignore stale firings.
    """

    DEFAULT_REVEAL_DELAY = 2.0

    def __init__(self, reveal_delay: float = DEFAULT_REVEAL_DELAY, session_label: str = "default"):
        self.reveal_delay = reveal_delay
        self._session_label = session_label
        self._task: Optional[asyncio.Task] = None
        self._generation: Optional[int] = None
        self._firing_task: Optional[asyncio.Task] = None

    @property
    def is_pending(self) -> bool:
        """True while an advance is scheduled and has not fired yet."""
        return self._task is not None and not self._task.done() and self._task is not self._firing_task

    @property
    def generation(self) -> Optional[int]:
        return self._generation

    def schedule(self, generation: int, advance_callback: Callable[[int], Awaitable[None]]) -> asyncio.Task:
        """
        Schedule the advance for the current reveal window.

        Args:
            generation: Session generation the advance belongs to
            advance_callback: Coroutine function called with the generation

        Returns:
            The scheduled asyncio task

        Raises:
            RuntimeError: If an advance is already pending or no event loop is running
        """
        if self.is_pending:
            details = f"advance already pending for generation {self._generation}"
            TimerLifecycleLogger.log_race_condition_detected(self._session_label, details)
            raise RuntimeError(f"Feedback cycle conflict: {details}")

        loop = asyncio.get_running_loop()
        self._generation = generation
        self._task = loop.create_task(self._run(generation, advance_callback))
        TimerLifecycleLogger.log_timer_scheduled(self._session_label, generation, self.reveal_delay)
        return self._task

    async def _run(self, generation: int, advance_callback: Callable[[int], Awaitable[None]]) -> None:
        try:
            await asyncio.sleep(self.reveal_delay)
        except asyncio.CancelledError:
            TimerLifecycleLogger.log_timer_completion(self._session_label, generation, "cancelled")
            raise

        TimerLifecycleLogger.log_timer_completion(self._session_label, generation, "natural_expiry")
        task = asyncio.current_task()
        self._firing_task = task
        try:
            await advance_callback(generation)
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                self._session_label,
                "advance_callback_error",
                str(e),
                "advance"
            )
            raise
        finally:
            # The next advance may already be firing
            if self._firing_task is task:
                self._firing_task = None

    def cancel(self) -> bool:
        """
        Abandon the pending advance.

        Returns:
            True if a pending advance was cancelled, False if nothing was pending
        """
        task = self._task
        if task is None or task.done():
            self._task = None
            return False

        if task is self._firing_task:
            # Advance already running; it completes on its own
            self._task = None
            return False

        task.cancel()
        self._task = None
        return True

    async def wait(self) -> None:
        """Wait until the pending advance has fired or been cancelled."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
