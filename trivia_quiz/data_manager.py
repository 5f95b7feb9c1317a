"""
Data manager for loading the trivia question catalog from JSON.
"""
import json
import os
import logging
from typing import Any, Dict, List, Optional, Tuple
from pathlib import Path

from .models import Question
from .quiz_engine import list_categories, list_difficulties


class CatalogUnavailableError(Exception):
    """Raised when no usable question catalog could be loaded."""
    pass


class DataManager:
    """Manages loading and validation of the JSON question catalog."""

    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB limit

    def __init__(self, catalog_path: str = "./questions.json"):
        """
        Initialize DataManager with the catalog location.

        Args:
            catalog_path: A JSON file, or a directory of JSON files
        """
        self.catalog_path = Path(catalog_path)
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []  # Track loading errors for user feedback
        self._catalog: Optional[Tuple[Question, ...]] = None

    def load_catalog(self) -> Tuple[Question, ...]:
        """
        Load the question catalog with per-file error handling.

        Returns:
            Immutable tuple of every question that loaded

        Raises:
            CatalogUnavailableError: If no question could be loaded
        """
        self._catalog = None
        self.load_errors.clear()

        scan_result = self._scan_catalog_files()
        if not scan_result['success']:
            self.load_errors.append(scan_result['error'])
            raise CatalogUnavailableError(scan_result['error'])

        json_files = scan_result['files']
        if not json_files:
            error = f"No question files found in {self.catalog_path}"
            self.logger.warning(error)
            self.load_errors.append(error)
            raise CatalogUnavailableError(error)

        questions: List[Question] = []
        for json_file in json_files:
            load_result = self._load_catalog_file_safely(json_file)
            if load_result['success']:
                questions.extend(load_result['questions'])
            else:
                self.load_errors.append(f"{json_file.name}: {load_result['error']}")

        if not questions:
            self.logger.error("No question files could be loaded successfully")
            self.load_errors.append("All question files failed to load")
            raise CatalogUnavailableError("Failed to load questions. Please try again later.")

        self._catalog = tuple(questions)
        self.logger.info(f"Loaded {len(self._catalog)} questions from {len(json_files)} file(s)")
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

        return self._catalog

    def get_catalog(self) -> Tuple[Question, ...]:
        """
        Get the loaded catalog.

        Raises:
            CatalogUnavailableError: If the catalog has not loaded successfully
        """
        if self._catalog is None:
            raise CatalogUnavailableError("Question catalog is not loaded")
        return self._catalog

    def is_loaded(self) -> bool:
        return self._catalog is not None

    def _scan_catalog_files(self) -> Dict[str, Any]:
        """
        Resolve the catalog path to a list of JSON files.

        Returns:
            Dictionary with success status, files list, and error message if applicable
        """
        try:
            if not self.catalog_path.exists():
                return {
                    'success': False,
                    'error': f"Question catalog not found: {self.catalog_path}",
                    'files': []
                }
            if self.catalog_path.is_dir():
                return {
                    'success': True,
                    'files': sorted(self.catalog_path.glob("*.json"))
                }
            return {
                'success': True,
                'files': [self.catalog_path]
            }
        except PermissionError:
            return {
                'success': False,
                'error': f"Permission denied: Cannot read {self.catalog_path}",
                'files': []
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error scanning {self.catalog_path}: {e}",
                'files': []
            }

    def _load_catalog_file_safely(self, json_file: Path) -> Dict[str, Any]:
        """
        Load a single catalog file with comprehensive error handling.

        Args:
            json_file: Path to the JSON file to load

        Returns:
            Dictionary with success status, questions, and error message if applicable
        """
        try:
            if not os.access(json_file, os.R_OK):
                return {
                    'success': False,
                    'error': "Permission denied: Cannot read file"
                }

            file_size = json_file.stat().st_size
            if file_size > self.MAX_FILE_SIZE:
                return {
                    'success': False,
                    'error': f"File too large ({file_size / 1024 / 1024:.1f}MB). "
                             f"Maximum size is {self.MAX_FILE_SIZE / 1024 / 1024}MB"
                }

            with open(json_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            records = self._extract_records(data)
            if records is None:
                return {
                    'success': False,
                    'error': "Catalog must be a JSON array or an object with a 'questions' array"
                }

            issues = self.validate_records(records)
            if issues:
                for issue in issues:
                    self.logger.error(f"{json_file.name}: {issue}")
                return {
                    'success': False,
                    'error': issues[0]
                }

            questions = self._parse_questions(records, json_file.stem)
            self.logger.debug(f"Loaded {len(questions)} questions from {json_file}")
            return {
                'success': True,
                'questions': questions
            }

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {json_file}: {e}")
            return {
                'success': False,
                'error': f"Invalid JSON: {e.msg} (line {e.lineno})"
            }
        except UnicodeDecodeError:
            return {
                'success': False,
                'error': "File is not valid UTF-8 text"
            }
        except OSError as e:
            self.logger.error(f"Failed to read question file {json_file}: {e}")
            return {
                'success': False,
                'error': f"Failed to read file: {e}"
            }

    @staticmethod
    def _extract_records(data: Any) -> Optional[list]:
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and isinstance(data.get("questions"), list):
            return data["questions"]
        return None

    def validate_records(self, records: list) -> List[str]:
        """
        Validate raw question records.

        Expected structure per record:
        {
            "id": str | int,       # Optional
            "category": str,
            "difficulty": str,
            "question": str,
            "options": [str, str, ...],
            "correct": int,
            "hint": str            # Optional
        }

        Args:
            records: Parsed JSON records to validate

        Returns:
            List of issues, empty if every record is valid
        """
        issues = []

        if not records:
            issues.append("Question list cannot be empty")
            return issues

        for i, record in enumerate(records):
            if not isinstance(record, dict):
                issues.append(f"Question {i} must be an object")
                continue

            for key in ("category", "difficulty", "question"):
                if key not in record:
                    issues.append(f"Question {i} missing '{key}' field")
                elif not isinstance(record[key], str) or not record[key].strip():
                    issues.append(f"Question {i} '{key}' field must be a non-empty string")

            options = record.get("options")
            if not isinstance(options, list) or len(options) < 2:
                issues.append(f"Question {i} 'options' must be an array of at least 2 strings")
            elif not all(isinstance(option, str) for option in options):
                issues.append(f"Question {i} 'options' must contain only strings")

            correct = record.get("correct")
            # bool is an int subclass but never a valid index here
            if not isinstance(correct, int) or isinstance(correct, bool):
                issues.append(f"Question {i} 'correct' field must be an integer")
            elif isinstance(options, list) and not 0 <= correct < len(options):
                issues.append(f"Question {i} 'correct' index {correct} out of range")

            if "hint" in record and not isinstance(record["hint"], str):
                issues.append(f"Question {i} 'hint' field must be a string")

            if "id" in record and not isinstance(record["id"], (str, int)):
                issues.append(f"Question {i} 'id' field must be a string or integer")

        return issues

    def _parse_questions(self, records: list, source_name: str) -> List[Question]:
        """
        Parse validated records into Question objects.

        Args:
            records: Validated question records
            source_name: File stem used to build ids for records without one

        Returns:
            List of Question objects
        """
        questions = []

        for i, record in enumerate(records, start=1):
            question = Question(
                id=str(record.get("id", f"{source_name}-{i}")),
                category=record["category"],
                difficulty=record["difficulty"],
                prompt=record["question"],
                options=tuple(record["options"]),
                correct_index=record["correct"],
                hint=record.get("hint", "")
            )
            questions.append(question)

        return questions

    def get_load_errors(self) -> List[str]:
        """
        Get list of errors encountered during the last load.

        Returns:
            List of error messages
        """
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get summary of the catalog loading status.

        Returns:
            Dictionary with loading statistics and status
        """
        catalog = self._catalog or ()
        return {
            'loaded': self._catalog is not None,
            'total_questions': len(catalog),
            'categories': list_categories(catalog),
            'difficulties': list_difficulties(catalog),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors()
        }
