"""
Core data models for MathPro practice sessions.
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import ClassVar, Dict, Optional, Tuple


class ProblemFormat(Enum):
    """Submission shape a problem expects."""
    INPUT = "input"
    MULTIPLE_CHOICE = "multiple-choice"


class InteractiveType(Enum):
    """Problem kinds that replace the plain validation path."""
    TWO_WAYS = "two-ways"
    TIMED_DRILL = "timed-drill"


@dataclass(frozen=True)
class BaseTenRepresentation:
    """Quick-picture counts shown next to a problem."""
    hundreds: int
    tens: int
    ones: int

    @property
    def value(self) -> int:
        return self.hundreds * 100 + self.tens * 10 + self.ones


@dataclass(frozen=True)
class TwoWaysData:
    """Target and the two people who must each build it."""
    target: int
    first_name: str
    second_name: str


@dataclass(frozen=True)
class TimedDrillItem:
    """A single arithmetic item inside a timed drill."""
    id: str
    prompt: str
    answer: int


@dataclass(frozen=True)
class TimedDrillData:
    """Batch of drill items plus the text shown above them."""
    title: str
    instructions: str
    items: Tuple[TimedDrillItem, ...] = ()

    def __post_init__(self):
        ids = [item.id for item in self.items]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Timed drill item ids must be unique, got {ids}")

    def get_item(self, item_id: str) -> Optional[TimedDrillItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


@dataclass(frozen=True)
class Problem:
    """
    A generated problem. Use one of the concrete variants below; the variant
    decides how an answer is checked.
    """
    question: str
    answer: int
    base_ten: Optional[BaseTenRepresentation] = None

    format: ClassVar[ProblemFormat] = ProblemFormat.INPUT
    interactive_type: ClassVar[Optional[InteractiveType]] = None


@dataclass(frozen=True)
class InputProblem(Problem):
    """Typed numeric answer."""


@dataclass(frozen=True)
class MultipleChoiceProblem(Problem):
    """Pick one of three numbers; exactly one equals the answer."""
    options: Tuple[int, ...] = ()

    format: ClassVar[ProblemFormat] = ProblemFormat.MULTIPLE_CHOICE

    def __post_init__(self):
        if len(self.options) != 3:
            raise ValueError(f"Multiple choice needs 3 options, got {list(self.options)}")
        if len(set(self.options)) != len(self.options):
            raise ValueError(f"Multiple choice options must be distinct, got {list(self.options)}")
        if self.options.count(self.answer) != 1:
            raise ValueError(
                f"Multiple choice options {list(self.options)} must contain answer {self.answer} once"
            )


@dataclass(frozen=True)
class TwoWaysProblem(Problem):
    """Build the target two different ways with tens and ones."""
    two_ways: Optional[TwoWaysData] = None

    interactive_type: ClassVar[Optional[InteractiveType]] = InteractiveType.TWO_WAYS

    def __post_init__(self):
        if self.two_ways is None:
            raise ValueError("Two-ways problem requires two_ways data")


@dataclass(frozen=True)
class TimedDrillProblem(Problem):
    """A batch of items answered against the clock."""
    drill: Optional[TimedDrillData] = None

    interactive_type: ClassVar[Optional[InteractiveType]] = InteractiveType.TIMED_DRILL

    def __post_init__(self):
        if self.drill is None or not self.drill.items:
            raise ValueError("Timed drill problem requires at least one drill item")


@dataclass
class PersonEntry:
    """Tens and ones counts as typed by the learner for one person."""
    tens: str = ""
    ones: str = ""


@dataclass
class TwoWaysSubmission:
    """Entries for both people of a two-ways problem."""
    first: PersonEntry = field(default_factory=PersonEntry)
    second: PersonEntry = field(default_factory=PersonEntry)

    @property
    def is_complete(self) -> bool:
        from .validator import parse_entered_count
        return all(
            parse_entered_count(value) is not None
            for value in (self.first.tens, self.first.ones, self.second.tens, self.second.ones)
        )


@dataclass(frozen=True)
class RewardSnapshot:
    """Point, medal and trophy counts at a moment in time."""
    points: int = 0
    medals: int = 0
    trophies: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class AppSettings:
    """Learner-adjustable settings."""
    timed_drill_duration_sec: int = 60
    points_per_medal: int = 5
    medals_per_trophy: int = 5
    drag_drop_points: int = 2
    voice_feedback_enabled: bool = True

    def to_dict(self) -> Dict[str, object]:
        """Serialise using the persisted key names."""
        return {
            "timedDrillDurationSec": self.timed_drill_duration_sec,
            "pointsPerMedal": self.points_per_medal,
            "medalsPerTrophy": self.medals_per_trophy,
            "dragDropPoints": self.drag_drop_points,
            "voiceFeedbackEnabled": self.voice_feedback_enabled,
        }
