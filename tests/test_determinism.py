"""Tests for compilation determinism.

Verifies that the same responses always compile to the same batch.
"""

import asyncio
import json
from pathlib import Path

import pytest

from care_forms.io import load_json
from care_forms.registry import Questionnaire
from care_forms.responses import QuestionnaireFormState, QuestionnaireResponse, create_form_state
from care_forms.submission import SubmissionContext, compile_requests
from care_forms.validation import validate_questionnaire


@pytest.fixture
def golden_form(fixtures_dir: Path) -> QuestionnaireFormState:
    """The intake fixture with its stored responses."""
    questionnaire = Questionnaire.model_validate(load_json(fixtures_dir / "intake.json"))
    stored = [
        QuestionnaireResponse.model_validate(r)
        for r in load_json(fixtures_dir / "intake_responses.json")["responses"]
    ]
    return create_form_state(questionnaire).model_copy(update={"responses": stored})


@pytest.fixture
def golden_batch(fixtures_dir: Path) -> dict:
    """Load the expected batch envelope."""
    return load_json(fixtures_dir / "golden" / "intake_batch.json")


class TestDeterminism:
    """Tests for compilation determinism."""

    def test_same_input_same_output(self, golden_form: QuestionnaireFormState, context: SubmissionContext) -> None:
        """Compiling twice produces identical batches."""
        first = asyncio.run(compile_requests([golden_form], context))
        second = asyncio.run(compile_requests([golden_form], context))

        assert first == second

    def test_json_serialization_deterministic(
        self,
        golden_form: QuestionnaireFormState,
        context: SubmissionContext,
    ) -> None:
        """The serialized envelope is byte-identical across runs."""
        dumps = [
            json.dumps(asyncio.run(compile_requests([golden_form], context)).envelope(), sort_keys=True)
            for _ in range(3)
        ]

        assert len(set(dumps)) == 1

    def test_validation_deterministic(self, golden_form: QuestionnaireFormState) -> None:
        """Validation of the golden responses is stable and clean."""
        results = [
            validate_questionnaire(golden_form.questionnaire.questions, golden_form.responses)
            for _ in range(2)
        ]

        assert results[0] == results[1]
        assert results[0].valid


class TestGoldenOutput:
    """Tests against the expected batch envelope."""

    def test_intake_batch(
        self,
        golden_form: QuestionnaireFormState,
        golden_batch: dict,
        context: SubmissionContext,
    ) -> None:
        """The intake responses compile to the golden envelope."""
        compiled = asyncio.run(compile_requests([golden_form], context))

        assert compiled.envelope() == golden_batch
