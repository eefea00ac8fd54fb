"""Pydantic models for questionnaire definitions."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QuestionType(str, Enum):
    """Answer type of a question."""

    STRING = "string"
    TEXT = "text"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DECIMAL = "decimal"
    DATE = "date"
    DATETIME = "dateTime"
    TIME = "time"
    CHOICE = "choice"
    QUANTITY = "quantity"
    STRUCTURED = "structured"
    DISPLAY = "display"
    GROUP = "group"


class StructuredType(str, Enum):
    """Domain payload shapes a structured question can capture."""

    ALLERGY_INTOLERANCE = "allergy_intolerance"
    MEDICATION_REQUEST = "medication_request"
    MEDICATION_STATEMENT = "medication_statement"
    SYMPTOM = "symptom"
    DIAGNOSIS = "diagnosis"
    ENCOUNTER = "encounter"
    APPOINTMENT = "appointment"
    FILES = "files"
    SERVICE_REQUEST = "service_request"
    CHARGE_ITEM = "charge_item"
    TIME_OF_DEATH = "time_of_death"


class EnableWhenOperator(str, Enum):
    """Comparison applied by an enable_when condition."""

    EXISTS = "exists"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER = "greater"
    LESS = "less"
    GREATER_OR_EQUALS = "greater_or_equals"
    LESS_OR_EQUALS = "less_or_equals"


class EnableBehavior(str, Enum):
    """How multiple enable_when conditions combine."""

    ALL = "all"
    ANY = "any"


class Coding(BaseModel):
    """A code from a terminology system."""

    system: str | None = None
    code: str | None = None
    display: str | None = None

    model_config = ConfigDict(extra="allow")


class AnswerOption(BaseModel):
    """A fixed choice offered by a choice question."""

    value: Any
    initial_selected: bool = False
    code: Coding | None = None


class EnableWhen(BaseModel):
    """Visibility condition referencing another question by link_id."""

    question: str  # link_id of the question the condition depends on
    operator: EnableWhenOperator
    answer: Any = None


class Question(BaseModel):
    """A node in the questionnaire tree.

    Group questions carry no answer of their own; their children do.
    Structured questions always answer with a list of domain records.
    """

    id: str
    link_id: str
    text: str = ""
    type: QuestionType
    structured_type: StructuredType | None = None
    required: bool = False
    repeats: bool = False
    answer_option: list[AnswerOption] | None = None
    answer_value_set: str | None = None
    enable_when: list[EnableWhen] = Field(default_factory=list)
    enable_behavior: EnableBehavior | None = None
    questions: list[Question] = Field(default_factory=list)
    code: Coding | None = None
    description: str | None = None

    @property
    def is_group(self) -> bool:
        """Whether this question is a group container."""
        return self.type == QuestionType.GROUP

    @property
    def is_structured(self) -> bool:
        """Whether this question captures structured domain records."""
        return self.type == QuestionType.STRUCTURED


class Questionnaire(BaseModel):
    """Complete questionnaire definition (detail view)."""

    id: str
    slug: str
    version: str = "0.0.1"
    title: str
    description: str | None = None
    status: str = "active"
    subject_type: str = "encounter"
    questions: list[Question]
    tags: list[Any] = Field(default_factory=list)

    def get_question(self, question_id: str) -> Question | None:
        """Get a question anywhere in the tree by its ID."""
        stack = list(reversed(self.questions))
        while stack:
            question = stack.pop()
            if question.id == question_id:
                return question
            stack.extend(reversed(question.questions))
        return None
