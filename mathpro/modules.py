"""
Registry of learning modules.
"""
import random
from dataclasses import dataclass
from typing import Callable, List, Optional

from .generators import (
    generate_addition_subtraction_problem,
    generate_base_ten_blocks_problem,
    generate_compare_numbers_problem,
    generate_drag_and_drop_problem,
    generate_number_bond_problem,
    generate_timed_no_carry_no_borrow_problem,
)
from .models import AppSettings, Problem, TwoWaysProblem

DRAG_DROP_MODULE_ID = 'two-ways-tens-ones'
TIMED_DRILL_MODULE_ID = 'timed-no-regrouping-drill'


@dataclass(frozen=True)
class LearningModule:
    """A practice topic and how it is scored."""
    id: str
    title: str
    description: str
    generator: Callable[[Optional[random.Random]], Problem]
    points_per_solve: Optional[int] = None

    def generate(self, rng: Optional[random.Random] = None) -> Problem:
        return self.generator(rng)


LEARNING_MODULES: List[LearningModule] = [
    LearningModule(
        id='add-sub-within-20',
        title='Addition and Subtraction',
        description='Fluency and story problems within 20.',
        generator=generate_addition_subtraction_problem,
    ),
    LearningModule(
        id='number-bonds-within-20',
        title='Number Bonds',
        description='Missing-part and total-part reasoning.',
        generator=generate_number_bond_problem,
    ),
    LearningModule(
        id='base-ten-place-value',
        title='Base Ten Blocks',
        description='Represent tens and ones and read numbers.',
        generator=generate_base_ten_blocks_problem,
    ),
    LearningModule(
        id=DRAG_DROP_MODULE_ID,
        title='Drag and Drop',
        description='Build two different tens/ones models.',
        generator=generate_drag_and_drop_problem,
        points_per_solve=2,
    ),
    LearningModule(
        id=TIMED_DRILL_MODULE_ID,
        title='Timed Add/Sub Drill',
        description='1-digit and 2-digit, no carry or borrowing.',
        generator=generate_timed_no_carry_no_borrow_problem,
    ),
    LearningModule(
        id='compare-numbers',
        title='Compare Numbers',
        description='Practice greater than, less than, and in-between numbers.',
        generator=generate_compare_numbers_problem,
    ),
]


def get_module_by_id(module_id: str) -> Optional[LearningModule]:
    """Look up a module, or None if the id is unknown."""
    for module in LEARNING_MODULES:
        if module.id == module_id:
            return module
    return None


def points_for_solve(module: LearningModule, problem: Problem, settings: AppSettings) -> int:
    """
    Points earned for a correct non-drill answer.

    Two-ways solves in the drag-and-drop module use the configurable
    drag-drop points; everything else uses the module's points per solve.
    """
    if isinstance(problem, TwoWaysProblem) and module.id == DRAG_DROP_MODULE_ID:
        return settings.drag_drop_points
    return module.points_per_solve or 1
