"""
Reward progression: points cascade into medals, medals into trophies.
"""
import logging
from typing import Optional

from .config_manager import ConfigManager
from .data_manager import DataManager
from .models import RewardSnapshot

logger = logging.getLogger(__name__)


class RewardLedger:
    """
    Point, medal and trophy counters.

    Thresholds are passed to ``credit`` by the caller; the ledger never stores
    them, so changing a threshold takes effect on the next credit.
    """

    def __init__(self, points: int = 0, medals: int = 0, trophies: int = 0):
        self.points = points
        self.medals = medals
        self.trophies = trophies

    @classmethod
    def from_snapshot(cls, snapshot: RewardSnapshot) -> "RewardLedger":
        return cls(snapshot.points, snapshot.medals, snapshot.trophies)

    def snapshot(self) -> RewardSnapshot:
        return RewardSnapshot(points=self.points, medals=self.medals, trophies=self.trophies)

    def credit(self, points: int, points_per_medal: int, medals_per_trophy: int) -> RewardSnapshot:
        """
        Add points and cascade them upward.

        A single large credit can pass several medal and trophy thresholds.

        Raises:
            ValueError: If points is not a positive integer or a threshold is below 1
        """
        if isinstance(points, bool) or not isinstance(points, int) or points < 1:
            raise ValueError(f"Credited points must be a positive integer, got {points!r}")
        if points_per_medal < 1 or medals_per_trophy < 1:
            raise ValueError(
                f"Thresholds must be at least 1, got {points_per_medal} points per medal "
                f"and {medals_per_trophy} medals per trophy"
            )

        self.points += points

        while self.points >= points_per_medal:
            self.points -= points_per_medal
            self.medals += 1

        while self.medals >= medals_per_trophy:
            self.medals -= medals_per_trophy
            self.trophies += 1

        return self.snapshot()

    def reset(self) -> RewardSnapshot:
        self.points = 0
        self.medals = 0
        self.trophies = 0
        return self.snapshot()


class RewardStore:
    """Owns the ledger for the application session and saves after every change."""

    def __init__(self, data_manager: Optional[DataManager], config_manager: ConfigManager):
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self.config_manager = config_manager
        self._ledger = RewardLedger()

    def load(self) -> RewardSnapshot:
        """Replace the ledger with the persisted snapshot."""
        if self.data_manager is not None:
            self._ledger = RewardLedger.from_snapshot(self.data_manager.load_rewards())
        return self.get()

    def get(self) -> RewardSnapshot:
        return self._ledger.snapshot()

    def credit(self, points: int) -> RewardSnapshot:
        """Credit points using the current thresholds and save."""
        before = self._ledger.snapshot()
        snapshot = self._ledger.credit(
            points,
            self.config_manager.get_points_per_medal(),
            self.config_manager.get_medals_per_trophy(),
        )
        self.logger.info(
            f"Credited {points} points: {before} -> {snapshot}",
            extra={
                'event_type': 'rewards_credited',
                'points': points,
                'trophies_earned': snapshot.trophies - before.trophies,
            }
        )
        self._save()
        return snapshot

    def reset(self) -> RewardSnapshot:
        """Zero every counter and save; callers must confirm with the learner first."""
        snapshot = self._ledger.reset()
        self.logger.info("Rewards reset to zero")
        self._save()
        return snapshot

    def _save(self) -> None:
        if self.data_manager is None:
            return
        result = self.data_manager.save_rewards(self._ledger.snapshot())
        if not result['success']:
            self.logger.warning(f"Rewards kept in memory but not saved: {result['error']}")
