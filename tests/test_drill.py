"""
Unit tests for the timed drill session and the asyncio drill timer.
"""
import asyncio
import unittest
from unittest.mock import AsyncMock, Mock, patch

from mathpro.drill import DrillState, DrillTimer, TimedDrillSession
from tests.test_fixtures import TestFixtures


class TestTimedDrillSession(unittest.TestCase):
    """Test cases for countdown, answers and scoring."""

    def setUp(self):
        self.credit = Mock()
        self.session = TimedDrillSession(TestFixtures.create_drill_data(), 3, self.credit)

    def answer_three_correctly(self):
        self.session.update_answer("item-1", "5")
        self.session.update_answer("item-2", "9")
        self.session.update_answer("item-3", "37")
        self.session.update_answer("item-4", "11")

    def test_initial_state(self):
        self.assertEqual(self.session.state, DrillState.IDLE)
        self.assertEqual(self.session.remaining_seconds, 3)
        self.assertEqual(self.session.answers, {})

    def test_answers_ignored_before_start(self):
        self.assertFalse(self.session.update_answer("item-1", "5"))
        self.assertEqual(self.session.answers, {})

    def test_unknown_item_ignored(self):
        self.session.start()
        self.assertFalse(self.session.update_answer("item-99", "5"))

    def test_countdown_scores_at_zero(self):
        self.session.start()
        self.answer_three_correctly()

        self.assertIsNone(self.session.tick())
        self.assertIsNone(self.session.tick())
        summary = self.session.tick()

        self.assertIsNotNone(summary)
        self.assertEqual(self.session.remaining_seconds, 0)
        self.assertEqual(self.session.state, DrillState.FINISHED)
        self.assertEqual(summary.correct, 3)
        self.assertEqual(summary.total, 5)
        self.assertEqual(summary.message, "Time up! You got 3 out of 5 correct.")
        self.credit.assert_called_once_with(3)

    def test_finalize_twice_credits_once(self):
        self.session.start()
        self.answer_three_correctly()
        first = self.session.finish_early()
        second = self.session.finalize()

        self.assertEqual(first.credited_points, 3)
        self.assertIsNone(second)
        self.credit.assert_called_once_with(3)

    def test_finalize_ends_a_running_drill(self):
        self.session.start()
        self.session.update_answer("item-1", "5")
        summary = self.session.finalize()

        self.assertEqual(summary.correct, 1)
        self.assertEqual(self.session.state, DrillState.FINISHED)
        self.assertFalse(self.session.running)
        self.assertFalse(self.session.update_answer("item-2", "9"))
        self.assertEqual(self.session.answers, {"item-1": "5"})
        for _ in range(3):
            self.assertIsNone(self.session.tick())
        self.credit.assert_called_once_with(1)

    def test_no_credit_when_nothing_correct(self):
        self.session.start()
        self.session.update_answer("item-1", "4")
        summary = self.session.finish_early()
        self.assertEqual(summary.correct, 0)
        self.assertEqual(summary.credited_points, 0)
        self.credit.assert_not_called()

    def test_ticks_after_finish_are_ignored(self):
        self.session.start()
        self.session.finish_early()
        self.assertIsNone(self.session.tick())
        self.assertIsNone(self.session.finish_early())

    def test_answers_locked_after_finish(self):
        self.session.start()
        self.session.finish_early()
        self.assertFalse(self.session.update_answer("item-1", "5"))

    def test_restart_resets_run(self):
        self.session.start()
        self.answer_three_correctly()
        self.session.finish_early()

        self.session.start()
        self.assertEqual(self.session.answers, {})
        self.assertEqual(self.session.remaining_seconds, 3)
        self.assertFalse(self.session.scored)
        self.assertFalse(self.session.credited)
        self.assertEqual(self.session.state, DrillState.RUNNING)

        self.session.update_answer("item-5", "99")
        summary = self.session.finish_early()
        self.assertEqual(summary.correct, 1)
        self.assertEqual(self.credit.call_count, 2)

    def test_answers_copy_is_detached(self):
        self.session.start()
        answers = self.session.answers
        answers["item-1"] = "5"
        self.assertEqual(self.session.answers, {})

    def test_padded_answers_count(self):
        self.session.start()
        self.session.update_answer("item-1", " 5 ")
        self.assertEqual(self.session.correct_count(), 1)


class TestDrillTimer(unittest.IsolatedAsyncioTestCase):
    """Test cases for the asyncio ticker."""

    async def test_ticks_until_callback_returns_false(self):
        calls = []

        def tick():
            calls.append(1)
            return len(calls) < 3

        timer = DrillTimer("test", interval=0)
        timer.start(tick)
        await timer._task

        self.assertEqual(len(calls), 3)
        self.assertEqual(timer.ticks, 3)
        self.assertFalse(timer.is_running)

    async def test_cancel_stops_ticking(self):
        tick = Mock(return_value=True)
        timer = DrillTimer("test", interval=60)
        timer.start(tick)
        await asyncio.sleep(0)

        timer.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await timer._task

        tick.assert_not_called()
        self.assertTrue(timer.is_cancelled)
        self.assertFalse(timer.is_running)

    async def test_cancel_is_idempotent(self):
        timer = DrillTimer("test", interval=60)
        timer.start(Mock(return_value=True))
        timer.cancel()
        timer.cancel()
        self.assertTrue(timer.is_cancelled)

    async def test_start_twice_raises(self):
        timer = DrillTimer("test", interval=60)
        timer.start(Mock(return_value=True))
        with self.assertRaises(RuntimeError):
            timer.start(Mock(return_value=True))
        timer.cancel()

    async def test_sleeps_for_interval(self):
        with patch('mathpro.drill.asyncio.sleep', new_callable=AsyncMock) as mock_sleep:
            timer = DrillTimer("test", interval=1.0)
            timer.start(Mock(return_value=False))
            await timer._task

            mock_sleep.assert_awaited_once_with(1.0)


class TestDrillTimerWithoutLoop(unittest.TestCase):

    def test_start_without_running_loop_raises(self):
        timer = DrillTimer("test")
        with self.assertRaises(RuntimeError):
            timer.start(Mock(return_value=True))


if __name__ == '__main__':
    unittest.main()
