"""Data models for questionnaire responses.

Response records are immutable: every edit produces a new record through
``model_copy`` so derived visibility and validation results can always be
recomputed from scratch.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from care_forms.registry.models import Coding, Questionnaire, StructuredType


class ResponseValue(BaseModel):
    """One discrete answer.

    ``type`` tags the variant: string, number, boolean, date, dateTime, time,
    quantity, or the name of a structured type. Quantities keep their unit
    (and optional coding) beside the value; structured answers keep their
    whole list of domain records in ``value``.
    """

    type: str
    value: Any = None
    unit: Coding | None = None
    coding: Coding | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def structured_items(self) -> list[Any]:
        """Domain records held by a structured answer (empty for scalars)."""
        if isinstance(self.value, list):
            return list(self.value)
        return []


class QuestionnaireResponse(BaseModel):
    """Response record for one leaf question."""

    question_id: str
    link_id: str
    values: list[ResponseValue] = Field(default_factory=list)
    note: str | None = None
    structured_type: StructuredType | None = None
    body_site: Coding | None = None
    method: Coding | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_answered(self) -> bool:
        """Whether at least one answer entry exists."""
        return len(self.values) > 0

    @property
    def structured_items(self) -> list[Any]:
        """Domain records of a structured response (always in the first value)."""
        if not self.values:
            return []
        return self.values[0].structured_items


class QuestionValidationError(BaseModel):
    """A validation error attached to a question.

    ``field_key`` and ``index`` scope the error to one field of one item when
    a question holds a list of structured records.
    """

    question_id: str
    error: str
    type: str = "validation_error"
    field_key: str | None = None
    index: int | None = None

    model_config = ConfigDict(frozen=True)


class QuestionnaireFormState(BaseModel):
    """A questionnaire attached to a submission with its responses and errors."""

    questionnaire: Questionnaire
    responses: list[QuestionnaireResponse]
    errors: list[QuestionValidationError] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def get_response(self, question_id: str) -> QuestionnaireResponse | None:
        """Get the response record for a question."""
        for response in self.responses:
            if response.question_id == question_id:
                return response
        return None
