"""
Configuration manager for Trivia Quiz settings.
"""
import logging
from typing import Any, Dict, List, Optional
from pathlib import Path

from .models import SessionConfig


class ConfigManager:
    """Manages quiz configuration settings."""

    # Default configuration values
    DEFAULT_REVEAL_DELAY = 2.0
    DEFAULT_CATALOG_PATH = "./questions.json"
    DEFAULT_CATEGORY = "General Knowledge"
    DEFAULT_DIFFICULTY = "Easy"

    # Validation limits
    MIN_REVEAL_DELAY = 0.5
    MAX_REVEAL_DELAY = 10.0

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._reveal_delay = self.DEFAULT_REVEAL_DELAY
        self._catalog_path = self.DEFAULT_CATALOG_PATH
        self._default_category = self.DEFAULT_CATEGORY
        self._default_difficulty = self.DEFAULT_DIFFICULTY
        self._shuffle_seed: Optional[int] = None

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply the 'quiz' section of a config.json dictionary.

        Args:
            config: Parsed configuration file contents

        Returns:
            List of error messages for settings that were rejected
        """
        quiz_config = config.get('quiz', {})
        results = []

        if 'catalog_path' in quiz_config:
            results.append(self.set_catalog_path(quiz_config['catalog_path']))
        if 'reveal_delay' in quiz_config:
            results.append(self.set_reveal_delay(quiz_config['reveal_delay']))
        if 'default_category' in quiz_config or 'default_difficulty' in quiz_config:
            results.append(self.set_default_selection(
                quiz_config.get('default_category', self._default_category),
                quiz_config.get('default_difficulty', self._default_difficulty)
            ))
        if 'shuffle_seed' in quiz_config:
            results.append(self.set_shuffle_seed(quiz_config['shuffle_seed']))

        errors = [result['error'] for result in results if not result['success']]
        if errors:
            self.logger.warning(f"Rejected {len(errors)} configuration setting(s), using defaults for them")
        else:
            self.logger.info("Configuration applied successfully")
        return errors

    def set_reveal_delay(self, delay: float) -> Dict[str, Any]:
        """
        Set how long answer feedback stays on screen before advancing.

        Args:
            delay: Reveal window in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(delay, bool) or not isinstance(delay, (int, float)):
            error_msg = f"Reveal delay must be a number, got {type(delay).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number of seconds, got {type(delay).__name__}"
            }

        if delay < self.MIN_REVEAL_DELAY:
            error_msg = f"Reveal delay must be at least {self.MIN_REVEAL_DELAY} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Too short: Minimum is {self.MIN_REVEAL_DELAY} seconds"
            }

        if delay > self.MAX_REVEAL_DELAY:
            error_msg = f"Reveal delay cannot exceed {self.MAX_REVEAL_DELAY} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Too long: Maximum is {self.MAX_REVEAL_DELAY} seconds"
            }

        self._reveal_delay = float(delay)
        self.logger.info(f"Reveal delay set to {self._reveal_delay} seconds")
        return {
            'success': True,
            'message': f"Reveal delay set to {self._reveal_delay} seconds",
            'user_message': f"✅ Answers will be shown for {self._reveal_delay:g} seconds"
        }

    def get_reveal_delay(self) -> float:
        return self._reveal_delay

    def set_catalog_path(self, path: str) -> Dict[str, Any]:
        """
        Set the question catalog location.

        Args:
            path: JSON file or directory of JSON files

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(path, str) or not path.strip():
            error_msg = "Catalog path must be a non-empty string"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Invalid catalog path"
            }

        path_obj = Path(path)
        if path_obj.exists() and path_obj.is_file() and path_obj.suffix.lower() != '.json':
            error_msg = f"Catalog file must be a .json file: {path}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ The question catalog must be a JSON file"
            }

        self._catalog_path = path
        self.logger.info(f"Catalog path set to {path}")
        return {
            'success': True,
            'message': f"Catalog path set to {path}",
            'user_message': f"✅ Questions will be loaded from {path}"
        }

    def get_catalog_path(self) -> str:
        return self._catalog_path

    def set_default_selection(self, category: str, difficulty: str) -> Dict[str, Any]:
        """
        Set the category and difficulty preselected on the menu.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        for name, value in (('category', category), ('difficulty', difficulty)):
            if not isinstance(value, str) or not value.strip():
                error_msg = f"Default {name} must be a non-empty string"
                self.logger.error(error_msg)
                return {
                    'success': False,
                    'error': error_msg,
                    'user_message': f"❌ Invalid default {name}"
                }

        self._default_category = category
        self._default_difficulty = difficulty
        self.logger.info(f"Default selection set to {category}/{difficulty}")
        return {
            'success': True,
            'message': f"Default selection set to {category}/{difficulty}",
            'user_message': f"✅ Default quiz is {category} ({difficulty})"
        }

    def get_default_selection(self) -> SessionConfig:
        return SessionConfig(self._default_category, self._default_difficulty)

    def set_shuffle_seed(self, seed: Optional[int]) -> Dict[str, Any]:
        """
        Set a fixed shuffle seed, or None for a fresh order every game.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            error_msg = f"Shuffle seed must be an integer or null, got {type(seed).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Shuffle seed must be a whole number"
            }

        self._shuffle_seed = seed
        if seed is None:
            self.logger.info("Shuffle seed cleared, question order is random")
        else:
            self.logger.info(f"Shuffle seed set to {seed}")
        return {
            'success': True,
            'message': "Shuffle seed cleared" if seed is None else f"Shuffle seed set to {seed}",
            'user_message': "✅ Question order updated"
        }

    def get_shuffle_seed(self) -> Optional[int]:
        return self._shuffle_seed

    def reset_to_defaults(self) -> None:
        """Reset all settings to default values."""
        self._reveal_delay = self.DEFAULT_REVEAL_DELAY
        self._catalog_path = self.DEFAULT_CATALOG_PATH
        self._default_category = self.DEFAULT_CATEGORY
        self._default_difficulty = self.DEFAULT_DIFFICULTY
        self._shuffle_seed = None
        self.logger.info("Configuration reset to defaults")

    def get_settings_summary(self) -> str:
        """
        Get a human-readable summary of current settings.

        Returns:
            Formatted string describing current settings
        """
        order = "seeded" if self._shuffle_seed is not None else "random"
        return (
            f"Catalog: {self._catalog_path}, "
            f"Default: {self._default_category} ({self._default_difficulty}), "
            f"Reveal: {self._reveal_delay:g} seconds, "
            f"Order: {order}"
        )
