"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from care_forms.registry import (
    EnableWhen,
    EnableWhenOperator,
    Questionnaire,
    QuestionType,
    StructuredType,
)
from care_forms.submission import BatchTransportError, SubmissionContext
from helpers import FakeBatchClient, make_question


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def schemas_dir(project_root: Path) -> Path:
    """Return the schemas directory."""
    return project_root / "schemas"


@pytest.fixture
def questionnaire_schema_path(schemas_dir: Path) -> Path:
    """Return the questionnaire definition schema path."""
    return schemas_dir / "questionnaire.schema.json"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def registry_path(fixtures_dir: Path) -> Path:
    """Return the fixture questionnaire registry path."""
    return fixtures_dir / "registry"


@pytest.fixture
def context() -> SubmissionContext:
    """A submission context with patient, encounter and facility."""
    return SubmissionContext(patient_id="p1", encounter_id="e1", facility_id="f1")


@pytest.fixture
def simple_questionnaire() -> Questionnaire:
    """One required free-text question."""
    return Questionnaire(
        id="q-simple",
        slug="simple",
        title="Simple",
        questions=[make_question("name", required=True)],
    )


@pytest.fixture
def conditional_questionnaire() -> Questionnaire:
    """Question B is required and shown only when A equals "yes"."""
    return Questionnaire(
        id="q-conditional",
        slug="conditional",
        title="Conditional",
        questions=[
            make_question("A"),
            make_question(
                "B",
                required=True,
                enable_when=[
                    EnableWhen(question="A", operator=EnableWhenOperator.EQUALS, answer="yes")
                ],
            ),
        ],
    )


@pytest.fixture
def intake_questionnaire() -> Questionnaire:
    """A questionnaire mixing groups, plain and structured questions."""
    return Questionnaire(
        id="q-intake",
        slug="intake",
        title="Intake",
        questions=[
            make_question(
                "vitals",
                QuestionType.GROUP,
                link_id="1",
                questions=[
                    make_question("weight", QuestionType.QUANTITY, link_id="1.1", required=True),
                    make_question("smoker", QuestionType.BOOLEAN, link_id="1.2"),
                    make_question(
                        "packs_per_day",
                        QuestionType.INTEGER,
                        link_id="1.3",
                        required=True,
                        enable_when=[
                            EnableWhen(
                                question="1.2",
                                operator=EnableWhenOperator.EQUALS,
                                answer=True,
                            )
                        ],
                    ),
                ],
            ),
            make_question(
                "allergies",
                QuestionType.STRUCTURED,
                link_id="2",
                structured_type=StructuredType.ALLERGY_INTOLERANCE,
            ),
            make_question("comments", QuestionType.TEXT, link_id="3"),
        ],
    )


@pytest.fixture
def valid_allergy() -> dict:
    """An allergy record passing validation."""
    return {
        "code": {"system": "http://snomed.info/sct", "code": "91936005", "display": "Penicillin"},
        "clinical_status": "active",
        "verification_status": "confirmed",
        "criticality": "high",
    }


@pytest.fixture
def fake_batch_client() -> FakeBatchClient:
    """A batch client where every request succeeds."""
    return FakeBatchClient()


@pytest.fixture
def failing_batch_client() -> FakeBatchClient:
    """A batch client whose transport always fails."""
    return FakeBatchClient(error=BatchTransportError("connection refused"))
