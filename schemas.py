"""
KidLearner Pydantic Schemas

Data models shared by the API server, the progress tracker and the client.
Wire names are camelCase (``bestPractices``, ``lessonsCompleted``) while
Python code uses snake_case attributes.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase and accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# LESSONS
# ============================================================================

class Exercise(BaseModel):
    """Hands-on exercise attached to a lesson."""

    model_config = ConfigDict(extra="allow")

    starter: str = Field(..., description="Code pre-filled in the editor")
    instructions: Optional[str] = None
    language: Optional[str] = None
    hint: Optional[str] = None


class Lesson(BaseModel):
    """Static lesson loaded from the bundled JSON file."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    title: str
    summary: str
    exercise: Exercise


class CodeExample(BaseModel):
    title: str
    description: str
    code: str


# ============================================================================
# CHAT
# ============================================================================

class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


# ============================================================================
# CODE CHECKING
# ============================================================================

class SyntaxIssue(BaseModel):
    """One finding of the local syntax checker."""

    type: Literal["error", "warning", "info"]
    message: str
    line: int = Field(1, ge=1)
    suggestion: Optional[str] = None


class SyntaxCheckResult(CamelModel):
    errors: List[SyntaxIssue] = Field(default_factory=list)
    warnings: List[SyntaxIssue] = Field(default_factory=list)
    is_valid: bool = True


class ValidationResult(CamelModel):
    """AI (or fallback) code review grouped by severity."""

    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    best_practices: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.errors or self.warnings or self.suggestions or self.best_practices)


# ============================================================================
# PROGRESS
# ============================================================================

class Achievement(BaseModel):
    id: str
    name: str
    description: str
    icon: str


class Progress(CamelModel):
    """Learner progress snapshot, persisted per learner."""

    lessons_completed: List[str] = Field(default_factory=list)
    total_lessons: int = Field(0, ge=0)
    ai_interactions: int = Field(0, ge=0)
    code_validations: int = Field(0, ge=0)
    files_saved: int = Field(0, ge=0)
    last_active_date: Optional[str] = None  # YYYY-MM-DD
    current_streak: int = Field(0, ge=0)
    longest_streak: int = Field(0, ge=0)
    achievements: List[str] = Field(default_factory=list)
    time_spent: int = Field(0, ge=0)  # minutes
    start_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ProgressStats(CamelModel):
    lessons_completed: int
    ai_interactions: int
    code_validations: int
    files_saved: int
    current_streak: int
    longest_streak: int
    time_spent: int
    achievements_count: int
    total_achievements: int
    achievements: List[Achievement]
