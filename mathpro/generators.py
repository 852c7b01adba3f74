"""
Problem generators for each learning module.

Every public generator accepts an optional ``random.Random`` so callers can
seed it, keeps no state between calls and returns a fresh Problem each time.
"""
import random
from typing import Callable, List, Optional, Sequence

from .models import (
    BaseTenRepresentation,
    InputProblem,
    MultipleChoiceProblem,
    Problem,
    TimedDrillData,
    TimedDrillItem,
    TimedDrillProblem,
    TwoWaysData,
    TwoWaysProblem,
)

NAMES = ['Ava', 'Noah', 'Mia', 'Leo', 'Liam', 'Emma']
ITEMS = ['beads', 'stickers', 'coins', 'blocks', 'marbles']

# Display limits
BASE_TEN_MIN = 0
BASE_TEN_MAX = 199
NUMBER_BOND_OPTION_MIN = 0
NUMBER_BOND_OPTION_MAX = 25
NUMBER_BOND_OPTION_SPREAD = 5
COMPARE_MIN = 10
COMPARE_MAX = 99

BASE_TEN_OFFSETS = (-10, 10, -1, 1, -5, 5, -20, 20)
SKIP_COUNT_STEPS = (1, 2, 5, 10)
TWO_WAYS_TARGET_MIN = 22
TWO_WAYS_TARGET_MAX = 68
DRILL_ITEM_COUNT = 10

Generator = Callable[[random.Random], Problem]


def _source(rng: Optional[random.Random]):
    return rng if rng is not None else random


def shuffle_numbers(numbers: Sequence[int], rng: Optional[random.Random] = None) -> List[int]:
    """Return a shuffled copy of ``numbers``."""
    shuffled = list(numbers)
    _source(rng).shuffle(shuffled)
    return shuffled


def _pick_template(templates: Sequence[Generator], rng) -> Problem:
    return rng.choice(templates)(rng)


# --- Addition and subtraction within 20 ------------------------------------------

def _forward_equation(rng) -> Problem:
    num1 = rng.randint(1, 10)
    num2 = rng.randint(1, 10)

    if rng.random() < 0.5:
        return InputProblem(question=f"{num1} + {num2} = ?", answer=num1 + num2)

    # Larger number first so first graders never see a negative result
    if num1 < num2:
        num1, num2 = num2, num1
    return InputProblem(question=f"{num1} - {num2} = ?", answer=num1 - num2)


def _missing_addend(rng) -> Problem:
    known = rng.randint(1, 10)
    missing = rng.randint(1, 10)
    total = known + missing
    return InputProblem(question=f"{known} + ? = {total}", answer=missing)


def _teen_subtraction(rng) -> Problem:
    minuend = rng.randint(11, 20)
    subtrahend = rng.randint(1, minuend - 1)
    return InputProblem(question=f"{minuend} - {subtrahend} = ?", answer=minuend - subtrahend)


def _story_problem(rng) -> Problem:
    name = rng.choice(NAMES)
    item = rng.choice(ITEMS)
    first = rng.randint(1, 10)
    second = rng.randint(1, 10)

    if rng.random() < 0.5:
        return InputProblem(
            question=(
                f"{name} has {first} {item} and finds {second} more. "
                f"How many {item} does {name} have now?"
            ),
            answer=first + second,
        )

    if first < second:
        first, second = second, first
    return InputProblem(
        question=f"{name} has {first} {item} and gives away {second}. How many {item} are left?",
        answer=first - second,
    )


def generate_addition_subtraction_problem(rng: Optional[random.Random] = None) -> Problem:
    """Fluency equations and short story problems within 20."""
    return _pick_template(
        (_forward_equation, _missing_addend, _teen_subtraction, _story_problem),
        _source(rng),
    )


# --- Number bonds ----------------------------------------------------------------

def _number_bond_parts(rng):
    total = rng.randint(6, 20)
    part = rng.randint(0, total)
    return total, part, total - part


def _number_bond_phrasing(rng) -> Problem:
    total, part, other = _number_bond_parts(rng)
    phrasings = [
        (f"{part} + ? = {total}", other),
        (f"? + {other} = {total}", part),
        (f"{total} = {part} + ?", other),
        (f"{total} = ? + {other}", part),
        (f"{total} - {part} = ?", other),
        (f"The whole is {total}. One part is {part}. What is the other part?", other),
    ]
    question, answer = rng.choice(phrasings)
    return InputProblem(question=question, answer=answer)


def build_number_bond_options(answer: int, rng: Optional[random.Random] = None) -> List[int]:
    """Answer plus two distractors within the bond spread, shuffled."""
    rng = _source(rng)
    candidates = {
        min(max(answer + offset, NUMBER_BOND_OPTION_MIN), NUMBER_BOND_OPTION_MAX)
        for offset in range(-NUMBER_BOND_OPTION_SPREAD, NUMBER_BOND_OPTION_SPREAD + 1)
        if offset != 0
    }
    candidates.discard(answer)
    distractors = rng.sample(sorted(candidates), 2)
    return shuffle_numbers([answer] + distractors, rng)


def _number_bond_choice(rng) -> Problem:
    total, part, other = _number_bond_parts(rng)
    return MultipleChoiceProblem(
        question=f"The whole is {total}. One part is {part}. Which number is the missing part?",
        answer=other,
        options=tuple(build_number_bond_options(other, rng)),
    )


def generate_number_bond_problem(rng: Optional[random.Random] = None) -> Problem:
    """Missing-part and total-part reasoning."""
    return _pick_template((_number_bond_phrasing, _number_bond_choice), _source(rng))


# --- Base ten blocks -------------------------------------------------------------

def build_multiple_choice_options(answer: int, rng: Optional[random.Random] = None) -> List[int]:
    """
    Build three shuffled options for a base-ten reading question.

    Distractors come from fixed offsets around the answer; values outside
    the display range are dropped and random values backfill any shortfall.
    """
    rng = _source(rng)
    candidates = {
        answer + offset
        for offset in BASE_TEN_OFFSETS
        if BASE_TEN_MIN <= answer + offset <= BASE_TEN_MAX
    }
    candidates.discard(answer)
    selected = shuffle_numbers(sorted(candidates), rng)[:2]

    while len(selected) < 2:
        fallback = rng.randint(BASE_TEN_MIN, BASE_TEN_MAX)
        if fallback != answer and fallback not in selected:
            selected.append(fallback)

    return shuffle_numbers([answer] + selected, rng)


def _random_base_ten(rng) -> BaseTenRepresentation:
    hundreds = 0 if rng.random() < 0.65 else 1
    return BaseTenRepresentation(
        hundreds=hundreds,
        tens=rng.randint(1, 9),
        ones=rng.randint(0, 9),
    )


def _read_picture_input(rng) -> Problem:
    base_ten = _random_base_ten(rng)
    return InputProblem(
        question="Write the number shown by the quick picture.",
        answer=base_ten.value,
        base_ten=base_ten,
    )


def _read_picture_choice(rng) -> Problem:
    base_ten = _random_base_ten(rng)
    return MultipleChoiceProblem(
        question="Which number does the quick picture show?",
        answer=base_ten.value,
        options=tuple(build_multiple_choice_options(base_ten.value, rng)),
        base_ten=base_ten,
    )


def _skip_counting(rng) -> Problem:
    step = rng.choice(SKIP_COUNT_STEPS)
    start = rng.randint(10, 99 - step * 4)
    terms = [start + step * index for index in range(5)]

    variant = rng.randint(0, 2)
    if variant == 0:
        return InputProblem(
            question=f"Find the next number: {terms[0]}, {terms[1]}, {terms[2]}, __",
            answer=terms[3],
        )
    if variant == 1:
        return InputProblem(
            question=f"Fill in the missing number: {terms[0]}, __, {terms[2]}, {terms[3]}",
            answer=terms[1],
        )
    return InputProblem(
        question=(
            f"Keep counting by {step}s: {terms[0]}, {terms[1]}, {terms[2]}, __, __. "
            "What is the last number?"
        ),
        answer=terms[4],
    )


def _count_groups(rng) -> Problem:
    name = rng.choice(NAMES)
    item = rng.choice(ITEMS)
    tens = rng.randint(1, 9)
    ones = rng.randint(0, 9)
    total = tens * 10 + ones

    phrasings = [
        (f"{name} has {tens} tens and {ones} ones {item}. How many {item} does {name} have in all?", total),
        (f"{name} packs {item} in bags of ten. There are {tens} full bags and {ones} loose {item}. "
         f"How many {item} are there?", total),
        (f"What number is {tens} tens and {ones} ones?", total),
        (f"{name} has {total} {item}. How many groups of ten can {name} make?", tens),
        (f"{name} has {total} {item} and makes as many groups of ten as possible. "
         f"How many {item} are left over?", ones),
        (f"How many tens are in {total}?", tens),
        (f"{total} = {tens} tens and ? ones", ones),
    ]
    question, answer = rng.choice(phrasings)
    return InputProblem(question=question, answer=answer)


def generate_base_ten_blocks_problem(rng: Optional[random.Random] = None) -> Problem:
    """Quick pictures, skip counting and tens/ones grouping."""
    return _pick_template(
        (_read_picture_input, _read_picture_choice, _skip_counting, _count_groups),
        _source(rng),
    )


# --- Two ways (drag and drop) ------------------------------------------------------

def generate_drag_and_drop_problem(rng: Optional[random.Random] = None) -> Problem:
    """Two people model the same number with different tens/ones combinations."""
    rng = _source(rng)
    target = rng.randint(TWO_WAYS_TARGET_MIN, TWO_WAYS_TARGET_MAX)
    first_name, second_name = rng.sample(NAMES, 2)

    return TwoWaysProblem(
        question=(
            f"{first_name} and {second_name} both want to make {target}. "
            "Show two different ways using tens and ones."
        ),
        answer=target,
        two_ways=TwoWaysData(target=target, first_name=first_name, second_name=second_name),
    )


# --- Timed drill -----------------------------------------------------------------

def _no_regrouping_operands(kind: str, operation: str, rng):
    """Operands whose digit-by-digit sum or difference stays within 0-9."""
    if kind == "one-digit":
        if operation == "+":
            left = rng.randint(1, 8)
            return left, rng.randint(1, 9 - left)
        left = rng.randint(1, 9)
        return left, rng.randint(1, left)

    if kind == "two-by-one":
        left_tens = rng.randint(1, 9)
        if operation == "+":
            left_ones = rng.randint(0, 8)
            return left_tens * 10 + left_ones, rng.randint(1, 9 - left_ones)
        left_ones = rng.randint(1, 9)
        return left_tens * 10 + left_ones, rng.randint(1, left_ones)

    left_tens = rng.randint(1, 8) if operation == "+" else rng.randint(1, 9)
    left_ones = rng.randint(0, 9)
    if operation == "+":
        right_tens = rng.randint(1, 9 - left_tens)
        right_ones = rng.randint(0, 9 - left_ones)
    else:
        right_tens = rng.randint(1, left_tens)
        right_ones = rng.randint(0, left_ones)
    return left_tens * 10 + left_ones, right_tens * 10 + right_ones


def _drill_item(index: int, rng) -> TimedDrillItem:
    kind = rng.choice(("one-digit", "two-by-one", "two-by-two"))
    operation = rng.choice("+-")
    left, right = _no_regrouping_operands(kind, operation, rng)
    answer = left + right if operation == "+" else left - right
    return TimedDrillItem(id=f"item-{index}", prompt=f"{left} {operation} {right} =", answer=answer)


def generate_timed_no_carry_no_borrow_problem(rng: Optional[random.Random] = None) -> Problem:
    """A batch of add/sub items that never need carrying or borrowing."""
    rng = _source(rng)
    items = tuple(_drill_item(index, rng) for index in range(1, DRILL_ITEM_COUNT + 1))

    return TimedDrillProblem(
        question="Timed drill: solve as many as you can before time runs out.",
        answer=0,
        drill=TimedDrillData(
            title="No Regrouping Sprint",
            instructions="Press start, then type each answer. No carrying or borrowing needed.",
            items=items,
        ),
    )


# --- Compare numbers -------------------------------------------------------------

def _distinct_pair(rng):
    first, second = rng.sample(range(COMPARE_MIN, COMPARE_MAX + 1), 2)
    return first, second


def _greater_of_two(rng) -> Problem:
    first, second = _distinct_pair(rng)
    return InputProblem(question=f"Which number is greater, {first} or {second}?", answer=max(first, second))


def _less_of_two(rng) -> Problem:
    first, second = _distinct_pair(rng)
    return InputProblem(question=f"Which number is less, {first} or {second}?", answer=min(first, second))


def _in_between(rng) -> Problem:
    low = rng.randint(COMPARE_MIN, COMPARE_MAX - 2)
    return InputProblem(question=f"What number is between {low} and {low + 2}?", answer=low + 1)


def _greatest_of_three(rng) -> Problem:
    values = rng.sample(range(COMPARE_MIN, COMPARE_MAX + 1), 3)
    return MultipleChoiceProblem(
        question="Which number is the greatest?",
        answer=max(values),
        options=tuple(shuffle_numbers(values, rng)),
    )


def generate_compare_numbers_problem(rng: Optional[random.Random] = None) -> Problem:
    """Greater than, less than and in-between numbers."""
    return _pick_template(
        (_greater_of_two, _less_of_two, _in_between, _greatest_of_three),
        _source(rng),
    )
