"""
Spoken-style feedback lines for right and wrong answers.
"""
import logging
import random
from typing import Callable, Optional

logger = logging.getLogger(__name__)

HAPPY_LINES = [
    'Yay!',
    'Woohoo!',
    'Woof woof!',
    'Meow meow!',
]

SAD_LINES = [
    'Aww...',
    'Oops...',
    'Uh-oh...',
    'Meow...',
]


class FeedbackVoice:
    """
    Announces results through a sink (a speaker, a chat channel, a log).

    ``announce_result`` is fire-and-forget: sink failures are logged and never
    reach the caller.
    """

    def __init__(self, sink: Optional[Callable[[str], None]] = None, rng: Optional[random.Random] = None):
        self._sink = sink
        self._rng = rng if rng is not None else random
        self.last_line: Optional[str] = None

    def announce_result(self, correct: bool) -> None:
        line = self._rng.choice(HAPPY_LINES if correct else SAD_LINES)
        self.last_line = line

        if self._sink is None:
            logger.debug(f"Feedback line (no sink): {line}")
            return

        try:
            self._sink(line)
        except Exception as e:
            logger.error(f"Failed to announce feedback line {line!r}: {e}")
