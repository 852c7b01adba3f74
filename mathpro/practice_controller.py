"""
Practice session controller for MathPro.
Owns the current module, problem, feedback and timed drill, and exposes the
operations a front end calls.
"""
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .config_manager import ConfigManager
from .data_manager import DataManager
from .drill import DrillSummary, DrillTimer, TimedDrillSession, TimerLifecycleLogger
from .feedback import FeedbackVoice
from .models import AppSettings, Problem, RewardSnapshot, TimedDrillProblem
from .modules import LEARNING_MODULES, LearningModule, get_module_by_id, points_for_solve
from .rewards import RewardStore
from .validator import CORRECT_MESSAGE, validate


class PracticeControllerError(Exception):
    """Base exception for practice controller errors."""
    pass


class UnknownModuleError(PracticeControllerError):
    """Raised when selecting a module id that is not registered."""
    pass


class NoActiveProblemError(PracticeControllerError):
    """Raised when an operation needs a current problem and there is none."""
    pass


class InvalidProblemStateError(PracticeControllerError):
    """Raised when the current problem does not support the requested operation."""
    pass


@dataclass(frozen=True)
class DrillView:
    """Timed drill state as shown to the learner."""
    remaining_seconds: int
    running: bool
    finished: bool
    scored: bool
    answers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ViewState:
    """Everything a front end needs to draw the current screen."""
    module_id: Optional[str]
    module_title: Optional[str]
    problem: Optional[Problem]
    feedback: str
    answered_correctly: bool
    rewards: RewardSnapshot
    settings: AppSettings
    drill: Optional[DrillView] = None


class PracticeController:
    """
    Orchestrates one learner's practice session.

    Every public operation returns a fresh ViewState. At most one drill timer
    is alive at a time, and every path that replaces or leaves the current
    problem cancels it.
    """

    def __init__(
        self,
        data_manager: Optional[DataManager],
        config_manager: ConfigManager,
        reward_store: Optional[RewardStore] = None,
        feedback_voice: Optional[FeedbackVoice] = None,
        rng: Optional[random.Random] = None,
        timer_factory: Optional[Callable[[], DrillTimer]] = None,
        on_drill_finished: Optional[Callable[[ViewState], Any]] = None,
    ):
        """
        Initialize the practice controller.

        Args:
            data_manager: Persistence for rewards and settings (None keeps state in memory)
            config_manager: Learner settings
            reward_store: Ledger owner; built from the managers if omitted
            feedback_voice: Announcer for right/wrong results
            rng: Random source passed to generators
            timer_factory: Builds the drill ticker; tests pass a manual timer
            on_drill_finished: Called with the view when the countdown expires
        """
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self.config_manager = config_manager
        self.reward_store = reward_store or RewardStore(data_manager, config_manager)
        self.feedback_voice = feedback_voice or FeedbackVoice()
        self.on_drill_finished = on_drill_finished
        self._rng = rng
        self._timer_factory = timer_factory or (lambda: DrillTimer("timed-drill"))

        self._module: Optional[LearningModule] = None
        self._problem: Optional[Problem] = None
        self._feedback = ""
        self._answered_correctly = False

        self._drill_session: Optional[TimedDrillSession] = None
        self._drill_timer: Optional[DrillTimer] = None
        self._drill_generation = 0

        self.logger.info("PracticeController initialized")

    # --- Startup and inspection ---------------------------------------------------

    def load(self) -> ViewState:
        """Load persisted settings and rewards."""
        self.config_manager.load()
        self.reward_store.load()
        return self.get_view_state()

    def get_modules(self) -> List[LearningModule]:
        return list(LEARNING_MODULES)

    def get_view_state(self) -> ViewState:
        drill_view = None
        if self._drill_session is not None:
            drill_view = DrillView(
                remaining_seconds=self._drill_session.remaining_seconds,
                running=self._drill_session.running,
                finished=self._drill_session.finished,
                scored=self._drill_session.scored,
                answers=self._drill_session.answers,
            )

        return ViewState(
            module_id=self._module.id if self._module else None,
            module_title=self._module.title if self._module else None,
            problem=self._problem,
            feedback=self._feedback,
            answered_correctly=self._answered_correctly,
            rewards=self.reward_store.get(),
            settings=self.config_manager.get_settings(),
            drill=drill_view,
        )

    # --- Module and problem lifecycle ---------------------------------------------

    def select_module(self, module_id: str) -> ViewState:
        """
        Enter a module and generate its first problem.

        Raises:
            UnknownModuleError: If the id is not registered
        """
        module = get_module_by_id(module_id)
        if module is None:
            raise UnknownModuleError(f"Unknown module: {module_id}")

        self._module = module
        self.logger.info(f"Selected module '{module_id}'")
        self._install_problem(module.generate(self._rng))
        return self.get_view_state()

    def leave_module(self) -> ViewState:
        """Go back to module selection, dropping the current problem."""
        self._cancel_drill_timer("left module")
        self._module = None
        self._problem = None
        self._drill_session = None
        self._feedback = ""
        self._answered_correctly = False
        return self.get_view_state()

    def request_new_problem(self) -> ViewState:
        """
        Replace the current problem with a new one from the same module.

        Raises:
            NoActiveProblemError: If no module is selected
        """
        module = self._require_module()
        self._install_problem(module.generate(self._rng))
        return self.get_view_state()

    def shutdown(self) -> None:
        """Cancel any running drill timer."""
        self._cancel_drill_timer("shutdown")

    def _install_problem(self, problem: Problem) -> None:
        self._cancel_drill_timer("problem replaced")
        self._problem = problem
        self._feedback = ""
        self._answered_correctly = False

        if isinstance(problem, TimedDrillProblem):
            self._drill_session = TimedDrillSession(
                problem.drill,
                self.config_manager.get_timed_drill_duration(),
                self._credit,
            )
        else:
            self._drill_session = None

    # --- Answering ----------------------------------------------------------------

    def submit_answer(self, submission: Any) -> ViewState:
        """
        Check an answer for the current problem.

        An unreadable plain answer changes nothing. A correct answer credits the
        ledger only the first time for this problem.

        Raises:
            NoActiveProblemError: If there is no current problem
            InvalidProblemStateError: If the problem is a timed drill or the
                submission shape does not fit the problem
        """
        problem = self._require_problem()
        if isinstance(problem, TimedDrillProblem):
            raise InvalidProblemStateError("Timed drills are answered item by item")

        try:
            result = validate(problem, submission)
        except TypeError as e:
            raise InvalidProblemStateError(str(e)) from e

        if result is None:
            return self.get_view_state()

        if result.correct:
            self._handle_correct(points_for_solve(self._module, problem, self.config_manager.get_settings()))
        else:
            self._handle_incorrect(result.message)
        return self.get_view_state()

    def _handle_correct(self, points: int) -> None:
        self._feedback = CORRECT_MESSAGE
        self._announce(True)
        if self._answered_correctly:
            self.logger.debug("Problem already credited, not crediting again")
            return
        self._answered_correctly = True
        self._credit(points)

    def _handle_incorrect(self, message: str) -> None:
        self._feedback = message
        self._announce(False)

    def _credit(self, points: int) -> None:
        self.reward_store.credit(points)

    def _announce(self, correct: bool) -> None:
        if self.config_manager.is_voice_feedback_enabled():
            self.feedback_voice.announce_result(correct)

    # --- Timed drill --------------------------------------------------------------

    def start_timed_drill(self) -> ViewState:
        """
        Start, or restart, the countdown for the current drill.

        Raises:
            NoActiveProblemError: If there is no current problem
            InvalidProblemStateError: If the current problem is not a timed drill
            RuntimeError: If the drill timer cannot be scheduled
        """
        session = self._require_drill_session()
        session.duration_sec = self.config_manager.get_timed_drill_duration()
        self._schedule_drill_timer()
        session.start()
        self._feedback = ""
        return self.get_view_state()

    def update_timed_answer(self, item_id: str, text: str) -> ViewState:
        """Record text for one drill item; ignored unless the drill is running."""
        session = self._require_drill_session()
        if not session.update_answer(item_id, text):
            self.logger.debug(f"Drill answer for {item_id!r} not accepted in state {session.state.value}")
        return self.get_view_state()

    def finish_timed_drill(self) -> ViewState:
        """End a running drill before the countdown expires and score it."""
        session = self._require_drill_session()
        summary = session.finish_early()
        self._cancel_drill_timer("finished early")
        if summary is not None:
            self._apply_drill_summary(summary)
        return self.get_view_state()

    def _schedule_drill_timer(self) -> None:
        self._cancel_drill_timer("drill restarted")
        self._drill_generation += 1
        generation = self._drill_generation
        timer = self._timer_factory()
        timer.start(lambda: self._on_drill_tick(generation))
        self._drill_timer = timer

    def _cancel_drill_timer(self, reason: str) -> None:
        # Bumping the generation turns any tick already in flight into a no-op
        self._drill_generation += 1
        if self._drill_timer is not None:
            self.logger.debug(f"Cancelling drill timer: {reason}")
            self._drill_timer.cancel()
            self._drill_timer = None

    def _on_drill_tick(self, generation: int) -> bool:
        """Timer callback; returns whether the timer should keep ticking."""
        if generation != self._drill_generation or self._drill_session is None:
            TimerLifecycleLogger.log_stale_tick(
                "timed-drill",
                f"tick for generation {generation}, current {self._drill_generation}"
            )
            return False

        summary = self._drill_session.tick()
        if summary is None:
            return self._drill_session.running

        self._drill_timer = None
        self._apply_drill_summary(summary)
        self._notify_drill_finished()
        return False

    def _apply_drill_summary(self, summary: DrillSummary) -> None:
        self._feedback = summary.message
        self._announce(summary.correct > 0)
        if summary.credited_points:
            self._answered_correctly = True

    def _notify_drill_finished(self) -> None:
        if self.on_drill_finished is None:
            return
        try:
            self.on_drill_finished(self.get_view_state())
        except Exception as e:
            self.logger.error(f"Drill finished listener failed: {e}")

    # --- Rewards and settings -----------------------------------------------------

    def reset_rewards(self) -> ViewState:
        """Zero all rewards. The front end must confirm with the learner first."""
        self.reward_store.reset()
        return self.get_view_state()

    def update_settings(self, **changes: Any) -> Dict[str, Any]:
        """
        Change settings through the config manager.

        Returns:
            The config manager's result dictionary plus the updated view
        """
        result = self.config_manager.update(**changes)
        result['view'] = self.get_view_state()
        return result

    # --- Helpers ------------------------------------------------------------------

    def _require_module(self) -> LearningModule:
        if self._module is None:
            raise NoActiveProblemError("No module selected")
        return self._module

    def _require_problem(self) -> Problem:
        if self._problem is None:
            raise NoActiveProblemError("No current problem")
        return self._problem

    def _require_drill_session(self) -> TimedDrillSession:
        self._require_problem()
        if self._drill_session is None:
            raise InvalidProblemStateError("The current problem is not a timed drill")
        return self._drill_session


def get_user_friendly_error_message(error: Exception) -> str:
    """Short learner-facing text for a controller error."""
    if isinstance(error, UnknownModuleError):
        return "❌ That module does not exist. Use `/modules` to see the list."

    elif isinstance(error, NoActiveProblemError):
        return "❌ No problem yet. Pick a module with `/practice` first."

    elif isinstance(error, InvalidProblemStateError):
        return f"❌ That doesn't work for this problem: {error}"

    else:
        return "❌ Something went wrong. Please try again."
