"""
Quiz session controller for the Trivia Quiz.
Owns the session state machine: idle -> active -> complete.
"""
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from .models import Feedback, Question, SessionConfig, SessionPhase, SessionState
from .quiz_engine import (
    FeedbackCycle,
    QuestionSelector,
    ScoreTracker,
    count_matching,
    list_categories,
    list_difficulties,
)
from .data_manager import CatalogUnavailableError


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class NoMatchingQuestionsError(QuizControllerError):
    """Raised when a category/difficulty pair has no questions."""
    pass


class InvalidSessionStateError(QuizControllerError):
    """Raised when the session is in an invalid phase for the requested operation."""
    pass


ChangeListener = Callable[[Dict[str, Any]], Awaitable[None]]


class QuizController:
    """
    Runs one player's trivia session.

    All mutations happen on the event loop thread, one event at a time:
    player events (answer, hint, navigation) and the reveal timer firing.
    The state is replaced wholesale whenever the session returns to idle,
    and every replacement bumps the generation so a late timer from an
    abandoned session is ignored.
    """

    def __init__(
        self,
        catalog: Optional[Sequence[Question]],
        reveal_delay: float = FeedbackCycle.DEFAULT_REVEAL_DELAY,
        rng: Optional[random.Random] = None,
        session_label: str = "default",
        on_change: Optional[ChangeListener] = None
    ):
        """
        Initialize the quiz controller.

        Args:
            catalog: Loaded question catalog, or None if loading failed
            reveal_delay: Seconds feedback stays visible before advancing
            rng: Random source for question order
            session_label: Identifier used in log records
            on_change: Coroutine awaited with a snapshot after each timed advance
        """
        self.logger = logging.getLogger(__name__)
        self._catalog: Optional[Tuple[Question, ...]] = tuple(catalog) if catalog is not None else None
        self._session_label = session_label
        self._selector = QuestionSelector(rng)
        self._score_tracker = ScoreTracker()
        self._feedback_cycle = FeedbackCycle(reveal_delay, session_label)
        self._state = SessionState()
        self._last_config: Optional[SessionConfig] = None
        self.on_change = on_change

        self.logger.debug(f"QuizController initialized for {session_label}")

    # State inspection

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def catalog_available(self) -> bool:
        return self._catalog is not None

    @property
    def last_config(self) -> Optional[SessionConfig]:
        return self._last_config

    @property
    def is_revealing(self) -> bool:
        """True while an answer's feedback is shown and input is locked."""
        return self._state.feedback is not None

    def get_current_question(self) -> Optional[Question]:
        return self._state.current_question

    def get_categories(self) -> List[str]:
        return list_categories(self._catalog or ())

    def get_difficulties(self) -> List[str]:
        return list_difficulties(self._catalog or ())

    def count_questions(self, config: SessionConfig) -> int:
        return count_matching(self._catalog or (), config)

    def get_snapshot(self) -> Dict[str, Any]:
        """
        Everything a presentation layer needs to draw the current screen.

        Returns:
            Dictionary describing the session
        """
        state = self._state
        config = state.config
        return {
            'phase': state.phase.value,
            'category': config.category if config else None,
            'difficulty': config.difficulty if config else None,
            'question': state.current_question,
            'current_index': state.current_index,
            'current_question': state.current_index + 1 if state.sequence else 0,
            'total_questions': state.total_questions,
            'score': state.score,
            'feedback': state.feedback,
            'hint_visible': state.hint_visible,
            'generation': state.generation
        }

    def get_final_score_text(self) -> Optional[str]:
        """
        Final score line, e.g. "1 out of 3".

        Returns:
            Score text if the session is complete, None otherwise
        """
        if self._state.phase != SessionPhase.COMPLETE:
            return None
        return f"{self._state.score} out of {self._state.total_questions}"

    # Transitions

    def start(self, config: SessionConfig) -> Dict[str, Any]:
        """
        Start a session for a category/difficulty pair.

        Args:
            config: Category and difficulty to play

        Returns:
            Session snapshot after entering the active phase

        Raises:
            CatalogUnavailableError: If the catalog never loaded
            InvalidSessionStateError: If a session is already active or complete
            NoMatchingQuestionsError: If no question matches the config
        """
        if self._catalog is None:
            raise CatalogUnavailableError("Question catalog is not available")

        if self._state.phase != SessionPhase.IDLE:
            raise InvalidSessionStateError(
                f"Cannot start from phase '{self._state.phase.value}', return to the menu first"
            )

        sequence = self._selector.select(self._catalog, config)
        if not sequence:
            self.logger.info(
                f"No questions for {config.category}/{config.difficulty} in session {self._session_label}",
                extra={
                    'event_type': 'session_start_rejected',
                    'session': self._session_label,
                    'category': config.category,
                    'difficulty': config.difficulty,
                    'timestamp': time.time()
                }
            )
            raise NoMatchingQuestionsError(
                f"No questions found for {config.category} ({config.difficulty})"
            )

        self._score_tracker.reset()
        self._state = SessionState(
            phase=SessionPhase.ACTIVE,
            sequence=sequence,
            config=config,
            generation=self._state.generation + 1
        )
        self._last_config = config

        self.logger.info(
            f"Started session {self._session_label}: {config.category}/{config.difficulty}, "
            f"questions={len(sequence)}",
            extra={
                'event_type': 'session_started',
                'session': self._session_label,
                'category': config.category,
                'difficulty': config.difficulty,
                'total_questions': len(sequence),
                'generation': self._state.generation,
                'timestamp': time.time()
            }
        )
        return self.get_snapshot()

    def submit_answer(self, selected_index: int) -> Optional[Feedback]:
        """
        Record an answer for the current question and start the reveal window.

        Must be called from a running event loop; the advance is scheduled on it.

        Args:
            selected_index: Index of the chosen option

        Returns:
            The feedback for this answer, or None if an answer is already pending

        Raises:
            InvalidSessionStateError: If no session is active
            ValueError: If selected_index is not an option of the current question
        """
        state = self._state
        if state.phase != SessionPhase.ACTIVE:
            raise InvalidSessionStateError(
                f"Cannot answer in phase '{state.phase.value}'"
            )

        if state.feedback is not None:
            self.logger.debug(
                f"Ignoring duplicate answer for question {state.current_index + 1} "
                f"in session {self._session_label}",
                extra={
                    'event_type': 'duplicate_answer_ignored',
                    'session': self._session_label,
                    'selected_index': selected_index,
                    'timestamp': time.time()
                }
            )
            return None

        question = state.sequence[state.current_index]
        if not 0 <= selected_index < len(question.options):
            raise ValueError(
                f"Option {selected_index} out of range for question {question.id}"
            )

        is_correct = selected_index == question.correct_index

        # Scheduling failure must leave the state untouched
        self._feedback_cycle.schedule(state.generation, self._advance)

        self._score_tracker.record_answer(is_correct)
        state.score = self._score_tracker.current_score()
        state.feedback = Feedback(selected_index=selected_index, is_correct=is_correct)

        self.logger.info(
            f"Answer for question {state.current_index + 1}/{state.total_questions} "
            f"in session {self._session_label}: {'correct' if is_correct else 'wrong'}",
            extra={
                'event_type': 'answer_submitted',
                'session': self._session_label,
                'question_id': question.id,
                'selected_index': selected_index,
                'is_correct': is_correct,
                'score': state.score,
                'timestamp': time.time()
            }
        )
        return state.feedback

    async def _advance(self, generation: int) -> None:
        """Timer-driven transition out of the reveal window."""
        state = self._state
        if generation != state.generation or state.phase != SessionPhase.ACTIVE or state.feedback is None:
            self.logger.debug(
                f"Ignoring stale advance for generation {generation} in session {self._session_label}",
                extra={
                    'event_type': 'stale_advance_ignored',
                    'session': self._session_label,
                    'generation': generation,
                    'current_generation': state.generation,
                    'timestamp': time.time()
                }
            )
            return

        if state.current_index < state.total_questions - 1:
            state.current_index += 1
            state.feedback = None
            state.hint_visible = False
            self.logger.debug(
                f"Advanced to question {state.current_index + 1} in session {self._session_label}"
            )
        else:
            state.phase = SessionPhase.COMPLETE
            state.feedback = None
            self.logger.info(
                f"Session {self._session_label} complete: {state.score} out of {state.total_questions}",
                extra={
                    'event_type': 'session_completed',
                    'session': self._session_label,
                    'score': state.score,
                    'total_questions': state.total_questions,
                    'timestamp': time.time()
                }
            )

        await self._notify_change()

    async def _notify_change(self) -> None:
        if self.on_change is None:
            return
        try:
            await self.on_change(self.get_snapshot())
        except Exception as e:
            self.logger.error(f"Change listener failed for session {self._session_label}: {e}", exc_info=True)

    def toggle_hint(self) -> bool:
        """
        Show or hide the current question's hint.

        Returns:
            True if the hint was toggled, False if no session is active
        """
        if self._state.phase != SessionPhase.ACTIVE:
            self.logger.warning(
                f"Cannot toggle hint for session {self._session_label}: no active session",
                extra={
                    'event_type': 'hint_toggle_failed',
                    'session': self._session_label,
                    'phase': self._state.phase.value,
                    'timestamp': time.time()
                }
            )
            return False

        self._state.hint_visible = not self._state.hint_visible
        return True

    def return_to_menu(self) -> None:
        """Abandon the session and go back to the selection menu."""
        self._reset("return_to_menu")

    def restart(self) -> None:
        """Clear the finished session; start must be called again to play."""
        self._reset("restart")

    def play_again(self) -> Dict[str, Any]:
        """
        Restart with the last played category and difficulty.

        Raises:
            InvalidSessionStateError: If no session has been started before
        """
        config = self._last_config
        if config is None:
            raise InvalidSessionStateError("No previous session to play again")
        self.restart()
        return self.start(config)

    def _reset(self, reason: str) -> None:
        previous_phase = self._state.phase
        timer_cancelled = self._feedback_cycle.cancel()
        self._score_tracker.reset()
        self._state = SessionState(generation=self._state.generation + 1)

        self.logger.info(
            f"Session {self._session_label} returned to idle ({reason}), timer cancelled: {timer_cancelled}",
            extra={
                'event_type': 'session_reset',
                'session': self._session_label,
                'reason': reason,
                'previous_phase': previous_phase.value,
                'timer_cancelled': timer_cancelled,
                'timestamp': time.time()
            }
        )

    async def wait_for_feedback(self) -> None:
        """Wait until the pending reveal window has ended."""
        await self._feedback_cycle.wait()

    # Error-handling wrappers

    def start_quiz(self, config: SessionConfig) -> Dict[str, Any]:
        """
        Start a quiz, reporting failures as a result dictionary.

        Args:
            config: Category and difficulty to play

        Returns:
            Dictionary with operation results and error information
        """
        try:
            session_info = self.start(config)
            return {
                'success': True,
                'message': f"Started {config.category} ({config.difficulty}) "
                           f"with {session_info['total_questions']} questions",
                'session_info': session_info
            }
        except (QuizControllerError, CatalogUnavailableError) as e:
            self.logger.warning(f"Failed to start quiz for session {self._session_label}: {e}")
            return {
                'success': False,
                'error': str(e),
                'user_message': self._get_user_friendly_error_message(e),
                'session_info': None
            }

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        """
        Generate user-friendly error messages.

        Args:
            error: The exception that occurred

        Returns:
            User-friendly error message
        """
        if isinstance(error, CatalogUnavailableError):
            return "❌ Failed to load questions. Please try again later."

        elif isinstance(error, NoMatchingQuestionsError):
            return "❌ There are no questions for that category and difficulty. Try a different combination."

        elif isinstance(error, InvalidSessionStateError):
            return "❌ You already have a quiz running. Finish it or use /quit first."

        else:
            return "❌ An unexpected error occurred. Please try again."

    def validate_session_state(self) -> Dict[str, Any]:
        """
        Check the session invariants and return diagnostic information.

        Returns:
            Dictionary with validation results and session state info
        """
        state = self._state
        issues = []

        if state.phase == SessionPhase.IDLE:
            if state.sequence or state.current_index != 0 or state.score != 0 or state.feedback is not None:
                issues.append("Idle session carries leftover progress")

        elif state.phase == SessionPhase.ACTIVE:
            if not 0 <= state.current_index < state.total_questions:
                issues.append("Current question index out of range")
            if not 0 <= state.score <= state.current_index + 1:
                issues.append("Score exceeds questions answered")

        elif state.phase == SessionPhase.COMPLETE:
            if state.current_index != state.total_questions - 1:
                issues.append("Session completed before the last question")
            if state.feedback is not None:
                issues.append("Completed session still shows feedback")

        if state.feedback is not None and not self._feedback_cycle.is_pending:
            issues.append("Feedback shown without a pending advance")

        return {
            'valid': len(issues) == 0,
            'state': state.phase.value,
            'issues': issues,
            'session_info': self.get_snapshot()
        }
