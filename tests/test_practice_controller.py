"""
Unit tests for PracticeController: problem lifecycle, crediting and drill
timer ownership.
"""
import random
import tempfile
import unittest
from unittest.mock import Mock

from mathpro.config_manager import ConfigManager
from mathpro.data_manager import DataManager
from mathpro.models import RewardSnapshot, TimedDrillProblem, TwoWaysProblem
from mathpro.modules import DRAG_DROP_MODULE_ID, TIMED_DRILL_MODULE_ID
from mathpro.practice_controller import (
    InvalidProblemStateError,
    NoActiveProblemError,
    PracticeController,
    UnknownModuleError,
    get_user_friendly_error_message,
)
from mathpro.validator import CORRECT_MESSAGE
from tests.test_fixtures import ManualTimer, TestFixtures


class ControllerTestCase(unittest.TestCase):
    """Builds a controller backed by a temporary state directory."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.data_manager = DataManager(self.temp_dir.name)
        self.config_manager = ConfigManager(self.data_manager)
        self.feedback_voice = Mock()
        self.drill_listener = Mock()
        self.timers = []
        self.controller = PracticeController(
            self.data_manager,
            self.config_manager,
            feedback_voice=self.feedback_voice,
            rng=random.Random(1234),
            timer_factory=self.make_timer,
            on_drill_finished=self.drill_listener,
        )
        self.controller.load()

    def tearDown(self):
        self.controller.shutdown()
        self.temp_dir.cleanup()

    def make_timer(self):
        timer = ManualTimer()
        self.timers.append(timer)
        return timer

    def two_ways_answer(self, target):
        tens, ones = divmod(target, 10)
        return TestFixtures.create_two_ways_submission((tens, ones), (tens - 1, ones + 10))

    def enter_drill(self, correct_items=3):
        self.config_manager.set_timed_drill_duration(15)
        view = self.controller.select_module(TIMED_DRILL_MODULE_ID)
        self.controller.start_timed_drill()
        for item in view.problem.drill.items[:correct_items]:
            self.controller.update_timed_answer(item.id, str(item.answer))
        return view


class TestModuleSelection(ControllerTestCase):

    def test_initial_view(self):
        view = self.controller.get_view_state()
        self.assertIsNone(view.module_id)
        self.assertIsNone(view.problem)
        self.assertEqual(view.rewards, RewardSnapshot())

    def test_select_module_generates_problem(self):
        view = self.controller.select_module('add-sub-within-20')
        self.assertEqual(view.module_id, 'add-sub-within-20')
        self.assertEqual(view.module_title, 'Addition and Subtraction')
        self.assertIsNotNone(view.problem)
        self.assertEqual(view.feedback, "")
        self.assertFalse(view.answered_correctly)
        self.assertIsNone(view.drill)

    def test_unknown_module(self):
        with self.assertRaises(UnknownModuleError):
            self.controller.select_module('long-division')

    def test_new_problem_requires_module(self):
        with self.assertRaises(NoActiveProblemError):
            self.controller.request_new_problem()

    def test_leave_module_clears_state(self):
        self.controller.select_module('compare-numbers')
        view = self.controller.leave_module()
        self.assertIsNone(view.module_id)
        self.assertIsNone(view.problem)


class TestAnswering(ControllerTestCase):

    def setUp(self):
        super().setUp()
        self.view = self.controller.select_module('add-sub-within-20')

    def test_submit_requires_problem(self):
        self.controller.leave_module()
        with self.assertRaises(NoActiveProblemError):
            self.controller.submit_answer("3")

    def test_correct_answer_credits_once(self):
        answer = str(self.view.problem.answer)
        view = self.controller.submit_answer(answer)
        self.assertEqual(view.feedback, CORRECT_MESSAGE)
        self.assertTrue(view.answered_correctly)
        self.assertEqual(view.rewards, RewardSnapshot(1, 0, 0))

        view = self.controller.submit_answer(answer)
        self.assertEqual(view.rewards, RewardSnapshot(1, 0, 0))

    def test_wrong_then_right_still_credits(self):
        answer = self.view.problem.answer
        view = self.controller.submit_answer(answer + 1)
        self.assertEqual(view.feedback, f"Incorrect. The answer was {answer}.")
        self.assertEqual(view.rewards, RewardSnapshot())

        view = self.controller.submit_answer(answer)
        self.assertEqual(view.rewards, RewardSnapshot(1, 0, 0))

    def test_unreadable_answer_changes_nothing(self):
        self.controller.submit_answer(self.view.problem.answer + 1)
        view = self.controller.submit_answer("   ")
        self.assertTrue(view.feedback.startswith("Incorrect"))
        self.assertEqual(self.feedback_voice.announce_result.call_count, 1)

    def test_new_problem_resets_feedback_and_flag(self):
        self.controller.submit_answer(self.view.problem.answer)
        view = self.controller.request_new_problem()
        self.assertEqual(view.feedback, "")
        self.assertFalse(view.answered_correctly)

        view = self.controller.submit_answer(view.problem.answer)
        self.assertEqual(view.rewards, RewardSnapshot(2, 0, 0))

    def test_voice_feedback_follows_setting(self):
        self.controller.submit_answer(self.view.problem.answer)
        self.feedback_voice.announce_result.assert_called_once_with(True)

        self.config_manager.set_voice_feedback_enabled(False)
        self.controller.submit_answer(self.view.problem.answer + 1)
        self.feedback_voice.announce_result.assert_called_once_with(True)

    def test_credit_is_persisted(self):
        self.controller.submit_answer(self.view.problem.answer)
        self.assertEqual(DataManager(self.temp_dir.name).load_rewards(), RewardSnapshot(1, 0, 0))

    def test_drill_rejects_plain_answer(self):
        self.controller.select_module(TIMED_DRILL_MODULE_ID)
        with self.assertRaises(InvalidProblemStateError):
            self.controller.submit_answer("5")


class TestTwoWays(ControllerTestCase):

    def setUp(self):
        super().setUp()
        self.view = self.controller.select_module(DRAG_DROP_MODULE_ID)
        self.assertIsInstance(self.view.problem, TwoWaysProblem)

    def test_solve_credits_drag_drop_points(self):
        target = self.view.problem.two_ways.target
        view = self.controller.submit_answer(self.two_ways_answer(target))
        self.assertEqual(view.feedback, CORRECT_MESSAGE)
        self.assertEqual(view.rewards, RewardSnapshot(2, 0, 0))

    def test_drag_drop_points_setting(self):
        self.config_manager.set_drag_drop_points(5)
        target = self.view.problem.two_ways.target
        view = self.controller.submit_answer(self.two_ways_answer(target))
        self.assertEqual(view.rewards, RewardSnapshot(0, 1, 0))

    def test_plain_value_rejected(self):
        with self.assertRaises(InvalidProblemStateError):
            self.controller.submit_answer(str(self.view.problem.two_ways.target))


class TestTimedDrill(ControllerTestCase):

    def test_start_requires_drill_problem(self):
        self.controller.select_module('compare-numbers')
        with self.assertRaises(InvalidProblemStateError):
            self.controller.start_timed_drill()

    def test_start_requires_problem(self):
        with self.assertRaises(NoActiveProblemError):
            self.controller.start_timed_drill()

    def test_drill_view_before_start(self):
        view = self.controller.select_module(TIMED_DRILL_MODULE_ID)
        self.assertIsInstance(view.problem, TimedDrillProblem)
        self.assertFalse(view.drill.running)
        self.assertEqual(view.drill.remaining_seconds, 60)
        self.assertEqual(self.timers, [])

    def test_answers_ignored_before_start(self):
        view = self.controller.select_module(TIMED_DRILL_MODULE_ID)
        item = view.problem.drill.items[0]
        view = self.controller.update_timed_answer(item.id, str(item.answer))
        self.assertEqual(view.drill.answers, {})

    def test_countdown_expiry_scores_and_credits(self):
        self.enter_drill(correct_items=3)
        timer = self.timers[-1]

        self.assertTrue(timer.fire(14))
        self.assertFalse(timer.fire())

        view = self.controller.get_view_state()
        self.assertTrue(view.drill.finished)
        self.assertEqual(view.drill.remaining_seconds, 0)
        self.assertEqual(view.feedback, "Time up! You got 3 out of 10 correct.")
        self.assertEqual(view.rewards, RewardSnapshot(3, 0, 0))
        self.assertTrue(view.answered_correctly)
        self.drill_listener.assert_called_once()
        self.assertEqual(self.drill_listener.call_args[0][0].feedback, view.feedback)

    def test_finish_early_cancels_timer(self):
        self.enter_drill(correct_items=2)
        timer = self.timers[-1]

        view = self.controller.finish_timed_drill()
        self.assertTrue(timer.cancelled)
        self.assertEqual(view.rewards, RewardSnapshot(2, 0, 0))
        self.drill_listener.assert_not_called()

        with self.assertLogs('mathpro.drill', level='WARNING'):
            self.assertFalse(timer.fire())
        self.assertEqual(self.controller.get_view_state().rewards, RewardSnapshot(2, 0, 0))

    def test_finish_twice_credits_once(self):
        self.enter_drill(correct_items=2)
        self.controller.finish_timed_drill()
        view = self.controller.finish_timed_drill()
        self.assertEqual(view.rewards, RewardSnapshot(2, 0, 0))

    def test_zero_correct_credits_nothing(self):
        self.enter_drill(correct_items=0)
        view = self.controller.finish_timed_drill()
        self.assertEqual(view.feedback, "Time up! You got 0 out of 10 correct.")
        self.assertEqual(view.rewards, RewardSnapshot())
        self.assertFalse(view.answered_correctly)
        self.feedback_voice.announce_result.assert_called_once_with(False)

    def test_restart_replaces_timer(self):
        self.enter_drill(correct_items=1)
        first = self.timers[-1]

        view = self.controller.start_timed_drill()
        second = self.timers[-1]

        self.assertIsNot(first, second)
        self.assertTrue(first.cancelled)
        self.assertEqual(view.drill.answers, {})
        self.assertEqual(view.drill.remaining_seconds, 15)

        with self.assertLogs('mathpro.drill', level='WARNING'):
            first.fire()
        self.assertEqual(self.controller.get_view_state().drill.remaining_seconds, 15)

        second.fire()
        self.assertEqual(self.controller.get_view_state().drill.remaining_seconds, 14)

    def test_new_problem_cancels_running_drill(self):
        self.enter_drill(correct_items=3)
        timer = self.timers[-1]

        self.controller.request_new_problem()
        self.assertTrue(timer.cancelled)

        with self.assertLogs('mathpro.drill', level='WARNING'):
            timer.fire()
        self.assertEqual(self.controller.get_view_state().rewards, RewardSnapshot())

    def test_leave_and_switch_cancel_timer(self):
        self.enter_drill()
        self.controller.leave_module()
        self.assertTrue(self.timers[-1].cancelled)

        self.enter_drill()
        self.controller.select_module('compare-numbers')
        self.assertTrue(self.timers[-1].cancelled)

    def test_shutdown_cancels_timer(self):
        self.enter_drill()
        self.controller.shutdown()
        self.assertTrue(self.timers[-1].cancelled)

    def test_duration_read_at_start(self):
        self.controller.select_module(TIMED_DRILL_MODULE_ID)
        self.config_manager.set_timed_drill_duration(30)
        view = self.controller.start_timed_drill()
        self.assertEqual(view.drill.remaining_seconds, 30)

    def test_listener_failure_is_logged(self):
        self.drill_listener.side_effect = RuntimeError("channel gone")
        self.enter_drill(correct_items=1)
        with self.assertLogs('mathpro.practice_controller', level='ERROR'):
            self.timers[-1].fire(15)
        self.assertEqual(self.controller.get_view_state().rewards, RewardSnapshot(1, 0, 0))


class TestRewardsAndSettings(ControllerTestCase):

    def test_reset_rewards(self):
        view = self.controller.select_module('add-sub-within-20')
        self.controller.submit_answer(view.problem.answer)

        view = self.controller.reset_rewards()
        self.assertEqual(view.rewards, RewardSnapshot())
        self.assertEqual(DataManager(self.temp_dir.name).load_rewards(), RewardSnapshot())

    def test_update_settings(self):
        result = self.controller.update_settings(points_per_medal=2)
        self.assertTrue(result['success'])
        self.assertEqual(result['view'].settings.points_per_medal, 2)

    def test_update_settings_rejected(self):
        result = self.controller.update_settings(timed_drill_duration_sec=5)
        self.assertFalse(result['success'])
        self.assertEqual(result['view'].settings.timed_drill_duration_sec, 60)

    def test_rewards_loaded_at_startup(self):
        self.data_manager.save_rewards(RewardSnapshot(4, 1, 0))
        controller = PracticeController(self.data_manager, ConfigManager(self.data_manager), timer_factory=self.make_timer)
        self.assertEqual(controller.load().rewards, RewardSnapshot(4, 1, 0))


class TestUserFriendlyErrors(unittest.TestCase):

    def test_messages(self):
        self.assertIn("/modules", get_user_friendly_error_message(UnknownModuleError("x")))
        self.assertIn("/practice", get_user_friendly_error_message(NoActiveProblemError("x")))
        self.assertIn("not a drill", get_user_friendly_error_message(InvalidProblemStateError("not a drill")))
        self.assertIn("Something went wrong", get_user_friendly_error_message(ValueError("x")))


if __name__ == '__main__':
    unittest.main()
