"""
Data manager for persisting reward and settings snapshots as JSON files.
"""
import json
import logging
import math
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import AppSettings, RewardSnapshot

REWARDS_FILE_NAME = "mathpro_rewards_v1.json"
SETTINGS_FILE_NAME = "mathpro_settings_v1.json"

DEFAULT_SETTINGS = AppSettings()

# Persisted key -> (attribute, minimum)
SETTINGS_INT_FIELDS = {
    "timedDrillDurationSec": ("timed_drill_duration_sec", 15),
    "pointsPerMedal": ("points_per_medal", 1),
    "medalsPerTrophy": ("medals_per_trophy", 1),
    "dragDropPoints": ("drag_drop_points", 1),
}


def _finite_floor(value: Any) -> Optional[int]:
    """Floor a finite JSON number; anything else (including booleans) gives None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return math.floor(value)


def sanitize_rewards(data: Any) -> RewardSnapshot:
    """Build a reward snapshot, flooring numbers and clamping each count at zero."""
    if not isinstance(data, dict):
        return RewardSnapshot()

    counts = {}
    for key in ("points", "medals", "trophies"):
        value = _finite_floor(data.get(key))
        counts[key] = max(0, value) if value is not None else 0
    return RewardSnapshot(**counts)


def sanitize_settings(data: Any) -> AppSettings:
    """Build settings, replacing each missing, malformed or out-of-range field with its default."""
    if not isinstance(data, dict):
        return AppSettings()

    values = {}
    for key, (attribute, minimum) in SETTINGS_INT_FIELDS.items():
        value = _finite_floor(data.get(key))
        if value is None or value < minimum:
            value = getattr(DEFAULT_SETTINGS, attribute)
        values[attribute] = value

    voice = data.get("voiceFeedbackEnabled")
    values["voice_feedback_enabled"] = voice if isinstance(voice, bool) else DEFAULT_SETTINGS.voice_feedback_enabled
    return AppSettings(**values)


class DataManager:
    """Loads and saves the reward and settings snapshots."""

    def __init__(self, state_directory: str = "./data/"):
        """
        Initialize DataManager with the state directory path.

        Args:
            state_directory: Directory holding the JSON snapshot files
        """
        self.state_directory = Path(state_directory)
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []  # Track loading errors for user feedback

    @property
    def rewards_path(self) -> Path:
        return self.state_directory / REWARDS_FILE_NAME

    @property
    def settings_path(self) -> Path:
        return self.state_directory / SETTINGS_FILE_NAME

    def load_rewards(self) -> RewardSnapshot:
        """
        Load the reward snapshot.

        Returns:
            Stored counts, or zeros when the file is missing or unreadable
        """
        data = self._read_json_object(self.rewards_path)
        snapshot = sanitize_rewards(data)
        self.logger.info(f"Loaded rewards: {snapshot}")
        return snapshot

    def save_rewards(self, snapshot: RewardSnapshot) -> Dict[str, Any]:
        return self._write_json(self.rewards_path, snapshot.to_dict())

    def load_settings(self) -> AppSettings:
        """
        Load the settings snapshot.

        Returns:
            Stored settings with defaults substituted for bad fields
        """
        data = self._read_json_object(self.settings_path)
        settings = sanitize_settings(data)
        self.logger.info(f"Loaded settings: {settings}")
        return settings

    def save_settings(self, settings: AppSettings) -> Dict[str, Any]:
        return self._write_json(self.settings_path, settings.to_dict())

    def _read_json_object(self, file_path: Path) -> Optional[dict]:
        """
        Read a JSON object from disk.

        Returns:
            The parsed object, or None if the file is absent, unreadable or
            not a JSON object
        """
        if not file_path.exists():
            self.logger.info(f"No saved state at {file_path}, using defaults")
            return None

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self._record_load_error(f"Invalid JSON in {file_path.name}: {e}")
            return None
        except OSError as e:
            self._record_load_error(f"Failed to read {file_path.name}: {e}")
            return None

        if not isinstance(data, dict):
            self._record_load_error(f"{file_path.name} must contain a JSON object")
            return None
        return data

    def _record_load_error(self, message: str) -> None:
        self.logger.error(message)
        self.load_errors.append(message)

    def _write_json(self, file_path: Path, payload: dict) -> Dict[str, Any]:
        """
        Write a JSON object to disk.

        Returns:
            Dictionary with success status and error message if applicable
        """
        directory_result = self._ensure_state_directory()
        if not directory_result['success']:
            self.logger.error(directory_result['error'])
            return directory_result

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            self.logger.debug(f"Saved {file_path.name}: {payload}")
            return {'success': True}
        except PermissionError:
            error = f"Permission denied: Cannot write {file_path}"
        except OSError as e:
            error = f"Failed to write {file_path}: {e}"

        self.logger.error(error)
        return {'success': False, 'error': error}

    def _ensure_state_directory(self) -> Dict[str, Any]:
        """
        Ensure the state directory exists and is writable.

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            if not self.state_directory.exists():
                self.state_directory.mkdir(parents=True, exist_ok=True)
                self.logger.info(f"Created state directory: {self.state_directory}")

            if not os.access(self.state_directory, os.W_OK):
                return {
                    'success': False,
                    'error': f"Permission denied: Cannot write to {self.state_directory}"
                }
            return {'success': True}

        except PermissionError:
            return {
                'success': False,
                'error': f"Permission denied: Cannot create {self.state_directory}"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error accessing {self.state_directory}: {e}"
            }

    def get_load_errors(self) -> List[str]:
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of persisted state locations and load problems.

        Returns:
            Dictionary with file locations and error status
        """
        return {
            'state_directory': str(self.state_directory),
            'rewards_file_exists': self.rewards_path.exists(),
            'settings_file_exists': self.settings_path.exists(),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
        }
