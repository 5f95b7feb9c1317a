"""
Unit tests for reveal timer lifecycle management in FeedbackCycle and QuizController.
Tests lifecycle logging, race condition detection, and error handling.
"""
import unittest
import asyncio
import random
from unittest.mock import AsyncMock

from trivia_quiz.models import SessionPhase
from trivia_quiz.quiz_controller import QuizController
from trivia_quiz.quiz_engine import FeedbackCycle
from tests.test_fixtures import FAST_REVEAL_DELAY, TestFixtures, async_test

ENGINE_LOGGER = 'trivia_quiz.quiz_engine'


def event_types(log_context):
    return [getattr(record, 'event_type', None) for record in log_context.records]


def completion_types(log_context):
    return [getattr(record, 'completion_type', None) for record in log_context.records
            if getattr(record, 'event_type', None) == 'timer_completed']


class TestTimerLifecycleLogging(unittest.TestCase):
    """Test cases for structured timer lifecycle logs."""

    @async_test
    async def test_natural_expiry_logged(self):
        cycle = FeedbackCycle(FAST_REVEAL_DELAY, "user-1")

        with self.assertLogs(ENGINE_LOGGER, level='DEBUG') as logs:
            cycle.schedule(4, AsyncMock())
            await cycle.wait()

        self.assertEqual(event_types(logs)[0], 'timer_scheduled')
        self.assertEqual(completion_types(logs), ['natural_expiry'])
        self.assertEqual(logs.records[0].session, "user-1")
        self.assertEqual(logs.records[0].generation, 4)

    @async_test
    async def test_cancellation_logged(self):
        cycle = FeedbackCycle(FAST_REVEAL_DELAY)

        with self.assertLogs(ENGINE_LOGGER, level='DEBUG') as logs:
            cycle.schedule(1, AsyncMock())
            # Let the task start sleeping before cancelling it
            await asyncio.sleep(0)
            cycle.cancel()
            await asyncio.sleep(0)

        self.assertEqual(completion_types(logs), ['cancelled'])

    @async_test
    async def test_race_condition_logged(self):
        """Scheduling over a pending advance is reported and refused."""
        cycle = FeedbackCycle(FAST_REVEAL_DELAY)
        cycle.schedule(1, AsyncMock())

        with self.assertLogs(ENGINE_LOGGER, level='WARNING') as logs:
            with self.assertRaises(RuntimeError):
                cycle.schedule(2, AsyncMock())

        self.assertEqual(event_types(logs), ['timer_race_condition'])
        self.assertEqual(cycle.generation, 1)
        cycle.cancel()

    @async_test
    async def test_callback_error_logged_and_raised(self):
        callback = AsyncMock(side_effect=ValueError("boom"))
        cycle = FeedbackCycle(FAST_REVEAL_DELAY)

        with self.assertLogs(ENGINE_LOGGER, level='ERROR') as logs:
            cycle.schedule(1, callback)
            with self.assertRaises(ValueError):
                await cycle.wait()

        self.assertEqual(event_types(logs), ['timer_error'])
        self.assertFalse(cycle.is_pending)


class TestControllerTimerIntegration(unittest.TestCase):
    """Test cases for how the controller drives the reveal timer."""

    def setUp(self):
        self.catalog = TestFixtures.create_sample_questions()

    def _create_controller(self, on_change=None):
        return QuizController(self.catalog, reveal_delay=FAST_REVEAL_DELAY, rng=random.Random(5),
                              on_change=on_change)

    @async_test
    async def test_timer_keyed_to_session_generation(self):
        controller = self._create_controller()
        snapshot = controller.start(TestFixtures.science_easy())

        controller.submit_answer(0)

        self.assertEqual(controller._feedback_cycle.generation, snapshot['generation'])
        self.assertTrue(controller._feedback_cycle.is_pending)
        controller.return_to_menu()
        self.assertFalse(controller._feedback_cycle.is_pending)

    @async_test
    async def test_listener_can_navigate_during_advance(self):
        """A listener leaving the session while the advance runs does not cancel it midway."""
        controller = None

        async def leave(snapshot):
            controller.return_to_menu()

        controller = self._create_controller(leave)
        controller.start(TestFixtures.science_easy())
        controller.submit_answer(0)
        await controller.wait_for_feedback()

        self.assertEqual(controller.phase, SessionPhase.IDLE)
        self.assertTrue(controller.validate_session_state()['valid'])

    @async_test
    async def test_listener_can_answer_new_session_during_advance(self):
        """An answer given from inside the listener gets its own pending advance."""
        controller = None
        results = []

        async def replay(snapshot):
            if results:
                return
            controller.return_to_menu()
            controller.start(TestFixtures.science_easy())
            controller.submit_answer(0)
            results.append(controller.validate_session_state())
            results.append(controller._feedback_cycle.is_pending)

        controller = self._create_controller(replay)
        controller.start(TestFixtures.science_easy())
        controller.submit_answer(0)
        await controller.wait_for_feedback()

        self.assertTrue(results[0]['valid'], results[0]['issues'])
        self.assertTrue(results[1])
        self.assertTrue(controller.validate_session_state()['valid'])
        controller.return_to_menu()
        self.assertFalse(controller._feedback_cycle.is_pending)

    @async_test
    async def test_restart_during_reveal_cancels_timer(self):
        listener = AsyncMock()
        controller = self._create_controller(listener)
        controller.start(TestFixtures.science_easy())
        controller.submit_answer(0)

        controller.restart()
        await asyncio.sleep(FAST_REVEAL_DELAY * 5)

        listener.assert_not_called()
        self.assertEqual(controller.phase, SessionPhase.IDLE)

    def test_answer_without_event_loop_leaves_state_untouched(self):
        """Without a running loop no advance can be scheduled, so the answer is refused."""
        controller = self._create_controller()
        controller.start(TestFixtures.science_easy())

        with self.assertRaises(RuntimeError):
            controller.submit_answer(0)

        self.assertIsNone(controller.state.feedback)
        self.assertEqual(controller.state.score, 0)


if __name__ == '__main__':
    unittest.main()
