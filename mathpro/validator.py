"""
Answer validation for generated problems.

Timed drills are scored by ``TimedDrillSession`` and are rejected here.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from .models import (
    MultipleChoiceProblem,
    Problem,
    TimedDrillProblem,
    TwoWaysProblem,
    TwoWaysSubmission,
)

logger = logging.getLogger(__name__)

CORRECT_MESSAGE = "Correct!"

_LEADING_INTEGER_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking one submission."""
    correct: bool
    message: str


def parse_answer(value: Union[int, str, None]) -> Optional[int]:
    """
    Parse a submitted answer.

    Integers pass through. Text is read up to the first non-digit, so
    ``"12"`` and ``" 12 "`` give 12 while ``""`` and ``"abc"`` give None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return None

    match = _LEADING_INTEGER_RE.match(value)
    if match is None:
        return None
    return int(match.group(1))


def parse_entered_count(value: Union[int, str, None]) -> Optional[int]:
    """Parse a tens/ones count; empty, non-numeric or negative values give None."""
    if isinstance(value, str) and value.strip() == "":
        return None

    parsed = parse_answer(value)
    if parsed is None or parsed < 0:
        return None
    return parsed


def validate(problem: Problem, submission) -> Optional[ValidationResult]:
    """
    Check a submission against a problem.

    Returns None when a plain or multiple-choice submission cannot be read as
    a number; the caller should treat that as "not answered yet".

    Raises:
        TypeError: If ``problem`` is a timed drill or the submission shape does
            not match the problem variant
    """
    if isinstance(problem, TimedDrillProblem):
        raise TypeError("Timed drill problems are scored by TimedDrillSession, not validate()")

    if isinstance(problem, TwoWaysProblem):
        if not isinstance(submission, TwoWaysSubmission):
            raise TypeError(
                f"Two-ways problems need a TwoWaysSubmission, got {type(submission).__name__}"
            )
        return _validate_two_ways(problem, submission)

    value = parse_answer(submission)
    if value is None:
        logger.debug(f"Ignoring unreadable submission {submission!r}")
        return None

    if isinstance(problem, MultipleChoiceProblem) and value not in problem.options:
        logger.warning(f"Submitted {value} is not one of the options {list(problem.options)}")

    if value == problem.answer:
        return ValidationResult(correct=True, message=CORRECT_MESSAGE)
    return ValidationResult(correct=False, message=f"Incorrect. The answer was {problem.answer}.")


def _validate_two_ways(problem: TwoWaysProblem, submission: TwoWaysSubmission) -> ValidationResult:
    data = problem.two_ways
    if not submission.is_complete:
        return ValidationResult(
            correct=False,
            message=f"Enter tens and ones numbers for {data.first_name} and {data.second_name}.",
        )

    first_tens = parse_entered_count(submission.first.tens)
    first_ones = parse_entered_count(submission.first.ones)
    second_tens = parse_entered_count(submission.second.tens)
    second_ones = parse_entered_count(submission.second.ones)

    first_total = first_tens * 10 + first_ones
    second_total = second_tens * 10 + second_ones
    is_different = (first_tens, first_ones) != (second_tens, second_ones)

    if first_total == data.target and second_total == data.target and is_different:
        return ValidationResult(correct=True, message=CORRECT_MESSAGE)

    if not is_different:
        return ValidationResult(
            correct=False,
            message="Both ways are the same. Enter two different tens/ones combinations.",
        )

    return ValidationResult(
        correct=False,
        message=(
            f"{data.first_name} makes {first_total} and {data.second_name} makes {second_total}. "
            f"Both totals must be {data.target}."
        ),
    )
