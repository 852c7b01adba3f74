"""
Configuration manager for MathPro learner settings.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from .data_manager import DataManager
from .models import AppSettings


class ConfigManager:
    """Manages learner settings and persists every accepted change."""

    # Default configuration values
    DEFAULT_TIMED_DRILL_DURATION = 60
    DEFAULT_POINTS_PER_MEDAL = 5
    DEFAULT_MEDALS_PER_TROPHY = 5
    DEFAULT_DRAG_DROP_POINTS = 2
    DEFAULT_VOICE_FEEDBACK_ENABLED = True

    # Validation limits
    MIN_TIMED_DRILL_DURATION = 15
    MIN_POINTS_PER_MEDAL = 1
    MIN_MEDALS_PER_TROPHY = 1
    MIN_DRAG_DROP_POINTS = 1

    SETTING_NAMES = (
        'timed_drill_duration_sec',
        'points_per_medal',
        'medals_per_trophy',
        'drag_drop_points',
        'voice_feedback_enabled',
    )

    def __init__(self, data_manager: Optional[DataManager] = None):
        """
        Initialize ConfigManager with default settings.

        Args:
            data_manager: Where accepted changes are saved; None keeps
                settings in memory only
        """
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self._settings = AppSettings()
        self._batch_depth = 0

    def load(self) -> AppSettings:
        """Replace current settings with the persisted snapshot."""
        if self.data_manager is not None:
            self._settings = self.data_manager.load_settings()
        return self.get_settings()

    def get_settings(self) -> AppSettings:
        """
        Get current settings.

        Returns:
            A copy, so callers cannot change settings without validation
        """
        return replace(self._settings)

    def get_timed_drill_duration(self) -> int:
        return self._settings.timed_drill_duration_sec

    def get_points_per_medal(self) -> int:
        return self._settings.points_per_medal

    def get_medals_per_trophy(self) -> int:
        return self._settings.medals_per_trophy

    def get_drag_drop_points(self) -> int:
        return self._settings.drag_drop_points

    def is_voice_feedback_enabled(self) -> bool:
        return self._settings.voice_feedback_enabled

    def set_timed_drill_duration(self, seconds: int) -> Dict[str, Any]:
        """
        Set the timed drill countdown length.

        Args:
            seconds: Drill duration in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        return self._set_int_setting(
            'timed_drill_duration_sec', "Timed drill duration", seconds,
            self.MIN_TIMED_DRILL_DURATION, unit=" seconds"
        )

    def set_points_per_medal(self, points: int) -> Dict[str, Any]:
        """Set how many points convert into one medal."""
        return self._set_int_setting(
            'points_per_medal', "Points per medal", points, self.MIN_POINTS_PER_MEDAL
        )

    def set_medals_per_trophy(self, medals: int) -> Dict[str, Any]:
        """Set how many medals convert into one trophy."""
        return self._set_int_setting(
            'medals_per_trophy', "Medals per trophy", medals, self.MIN_MEDALS_PER_TROPHY
        )

    def set_drag_drop_points(self, points: int) -> Dict[str, Any]:
        """Set the points earned for a drag-and-drop solve."""
        return self._set_int_setting(
            'drag_drop_points', "Drag-and-drop points", points, self.MIN_DRAG_DROP_POINTS
        )

    def set_voice_feedback_enabled(self, enabled: bool) -> Dict[str, Any]:
        """
        Turn spoken feedback on or off.

        Args:
            enabled: True to announce results

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(enabled, bool):
            error_msg = f"Voice feedback must be a boolean, got {type(enabled).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected true/false, got {type(enabled).__name__}"
            }

        self._settings.voice_feedback_enabled = enabled
        state = "on" if enabled else "off"
        self.logger.info(f"Voice feedback turned {state}")
        return self._persisted({
            'success': True,
            'message': f"Voice feedback turned {state}",
            'user_message': f"✅ Voice feedback is {state}"
        })

    def update(self, **changes: Any) -> Dict[str, Any]:
        """
        Apply several setting changes together.

        Either every change is applied and saved once, or none is: the first
        rejected change restores the previous settings and nothing is saved.

        Returns:
            Dictionary with success status and the per-setting results
        """
        previous = replace(self._settings)
        self._batch_depth += 1
        try:
            result = self._apply_changes(changes)
        finally:
            self._batch_depth -= 1

        if not result['success']:
            self._settings = previous
            self.logger.info("Settings update rejected, previous values kept")
            return result

        saved = self._persisted({})
        for change in result['results'].values():
            change.update(saved)
        return result

    def _apply_changes(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        setters = {
            'timed_drill_duration_sec': self.set_timed_drill_duration,
            'points_per_medal': self.set_points_per_medal,
            'medals_per_trophy': self.set_medals_per_trophy,
            'drag_drop_points': self.set_drag_drop_points,
            'voice_feedback_enabled': self.set_voice_feedback_enabled,
        }
        results = {}
        for name, value in changes.items():
            setter = setters.get(name)
            if setter is None:
                error_msg = f"Unknown setting: {name}"
                self.logger.error(error_msg)
                return {
                    'success': False,
                    'error': error_msg,
                    'user_message': f"❌ Unknown setting: {name}",
                    'results': results
                }
            results[name] = setter(value)
            if not results[name]['success']:
                return {
                    'success': False,
                    'error': results[name]['error'],
                    'user_message': results[name]['user_message'],
                    'results': results
                }
        return {'success': True, 'message': "Settings updated", 'results': results}

    def reset_to_defaults(self) -> Dict[str, Any]:
        """Reset all settings to their default values."""
        self._settings = AppSettings(
            timed_drill_duration_sec=self.DEFAULT_TIMED_DRILL_DURATION,
            points_per_medal=self.DEFAULT_POINTS_PER_MEDAL,
            medals_per_trophy=self.DEFAULT_MEDALS_PER_TROPHY,
            drag_drop_points=self.DEFAULT_DRAG_DROP_POINTS,
            voice_feedback_enabled=self.DEFAULT_VOICE_FEEDBACK_ENABLED,
        )
        self.logger.info("All settings reset to default values")
        return self._persisted({
            'success': True,
            'message': "All settings reset to default values",
            'user_message': "✅ Settings reset to defaults"
        })

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        limits = {
            'timed_drill_duration_sec': self.MIN_TIMED_DRILL_DURATION,
            'points_per_medal': self.MIN_POINTS_PER_MEDAL,
            'medals_per_trophy': self.MIN_MEDALS_PER_TROPHY,
            'drag_drop_points': self.MIN_DRAG_DROP_POINTS,
        }
        for name, minimum in limits.items():
            value = getattr(self._settings, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
                validation_result["valid"] = False
                validation_result["issues"].append(f"Invalid {name.replace('_', ' ')}: {value}")

        if not isinstance(self._settings.voice_feedback_enabled, bool):
            validation_result["valid"] = False
            validation_result["issues"].append(
                f"Invalid voice feedback setting: {self._settings.voice_feedback_enabled}"
            )

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        voice_str = "on" if self._settings.voice_feedback_enabled else "off"
        return (
            f"Settings:\n"
            f"• Timed drill: {self._settings.timed_drill_duration_sec} seconds\n"
            f"• Points per medal: {self._settings.points_per_medal}\n"
            f"• Medals per trophy: {self._settings.medals_per_trophy}\n"
            f"• Drag-and-drop points: {self._settings.drag_drop_points}\n"
            f"• Voice feedback: {voice_str}"
        )

    def get_user_friendly_validation_errors(self) -> List[str]:
        return [
            f"❌ Configuration Issue: {issue}. Use /settings to review current values."
            for issue in self.validate_settings()["issues"]
        ]

    def _set_int_setting(self, attribute: str, label: str, value: Any, minimum: int, unit: str = "") -> Dict[str, Any]:
        # bool is an int subclass but never a valid count
        if isinstance(value, bool) or not isinstance(value, int):
            error_msg = f"{label} must be an integer, got {type(value).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(value).__name__}"
            }

        if value < minimum:
            error_msg = f"{label} must be at least {minimum}{unit}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Too small: Minimum is {minimum}{unit}"
            }

        setattr(self._settings, attribute, value)
        self.logger.info(f"{label} set to {value}{unit}")
        return self._persisted({
            'success': True,
            'message': f"{label} set to {value}{unit}",
            'user_message': f"✅ {label} set to {value}{unit}"
        })

    def _persisted(self, result: Dict[str, Any]) -> Dict[str, Any]:
        """Save current settings and note any save failure on ``result``."""
        # update() saves once after all of its changes are accepted
        if self.data_manager is None or self._batch_depth:
            return result

        save_result = self.data_manager.save_settings(self._settings)
        if not save_result['success']:
            self.logger.warning(f"Setting applied but not saved: {save_result['error']}")
            result['saved'] = False
            result['save_error'] = save_result['error']
        else:
            result['saved'] = True
        return result
