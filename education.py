"""
Lesson datastore for KidLearner.
Loads the bundled lessons and code examples once and serves them read-only.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from constants import SUPPORTED_LANGUAGES
from exceptions import ContentLoadError, LessonNotFoundError
from schemas import CodeExample, Lesson
from validators import normalize_language

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _read_json(path: PathLike):
    """Parse a bundled JSON file or raise ContentLoadError."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ContentLoadError(f"Content file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentLoadError(f"Malformed JSON in {path}: line {e.lineno}: {e.msg}") from e
    except OSError as e:
        raise ContentLoadError(f"Cannot read {path}: {e}") from e


class LessonStore:
    """Read-only collection of lessons in file order."""

    def __init__(self, lessons: List[Lesson]):
        self._lessons = list(lessons)
        self._by_id: Dict[str, Lesson] = {}
        for lesson in self._lessons:
            if lesson.id in self._by_id:
                raise ContentLoadError(f"Duplicate lesson id: {lesson.id}")
            self._by_id[lesson.id] = lesson

    @classmethod
    def load(cls, path: PathLike) -> "LessonStore":
        """
        Load lessons from a JSON list.

        Raises:
            ContentLoadError: If the file is missing, malformed or has duplicate ids
        """
        raw = _read_json(path)
        if not isinstance(raw, list):
            raise ContentLoadError(f"{path} must contain a list of lessons")

        lessons = []
        for index, item in enumerate(raw):
            if isinstance(item, dict) and "id" in item:
                # Ids are compared as strings, numeric ids in the file included
                item = {**item, "id": str(item["id"])}
            try:
                lessons.append(Lesson.model_validate(item))
            except ValidationError as e:
                raise ContentLoadError(f"Invalid lesson #{index + 1} in {path}: {e}") from e

        logger.info(f"📚 Loaded {len(lessons)} lessons from {path}")
        return cls(lessons)

    def list_lessons(self) -> List[Lesson]:
        return list(self._lessons)

    def get_lesson(self, lesson_id) -> Lesson:
        """
        Raises:
            LessonNotFoundError: If no lesson has this id
        """
        lesson = self._by_id.get(str(lesson_id))
        if lesson is None:
            raise LessonNotFoundError(f"Lesson not found: {lesson_id}")
        return lesson

    def has_lesson(self, lesson_id) -> bool:
        return str(lesson_id) in self._by_id

    def __len__(self) -> int:
        return len(self._lessons)


class CodeExampleLibrary:
    """Example snippets grouped by language."""

    def __init__(self, examples: Dict[str, List[CodeExample]]):
        self._examples = examples

    @classmethod
    def load(cls, path: PathLike) -> "CodeExampleLibrary":
        """
        Load {"html": [...], "css": [...], "javascript": [...]}.

        Raises:
            ContentLoadError: If the file is missing or malformed
        """
        raw = _read_json(path)
        if not isinstance(raw, dict):
            raise ContentLoadError(f"{path} must map languages to example lists")

        examples: Dict[str, List[CodeExample]] = {}
        for language, items in raw.items():
            if language not in SUPPORTED_LANGUAGES:
                logger.warning(f"⚠️ Ignoring examples for unsupported language: {language}")
                continue
            if not isinstance(items, list):
                raise ContentLoadError(f"Examples for {language} must be a list")
            try:
                examples[language] = [CodeExample.model_validate(item) for item in items]
            except ValidationError as e:
                raise ContentLoadError(f"Invalid {language} example in {path}: {e}") from e

        total = sum(len(items) for items in examples.values())
        logger.info(f"📚 Loaded {total} code examples from {path}")
        return cls(examples)

    def languages(self) -> List[str]:
        return [language for language in SUPPORTED_LANGUAGES if language in self._examples]

    def all_examples(self) -> Dict[str, List[CodeExample]]:
        return {language: list(self._examples[language]) for language in self.languages()}

    def examples_for(self, language: str) -> List[CodeExample]:
        """
        Raises:
            UnsupportedLanguageError: If the language is not html, css or javascript
        """
        return list(self._examples.get(normalize_language(language), []))

    def find(self, language: str, title: str) -> Optional[CodeExample]:
        wanted = title.strip().lower()
        for example in self.examples_for(language):
            if example.title.lower() == wanted:
                return example
        return None
