"""Built-in single-question questionnaires for ad hoc structured captures.

Each built-in questionnaire wraps exactly one required structured question,
e.g. "add one diagnosis" from an encounter page without authoring a form.
"""

from care_forms.registry.models import Question, Questionnaire, QuestionType, StructuredType

_PATIENT_SUBJECT_TYPES = {StructuredType.ENCOUNTER, StructuredType.TIME_OF_DEATH}

STRUCTURED_LABELS: dict[StructuredType, str] = {
    StructuredType.ALLERGY_INTOLERANCE: "Allergy Intolerance",
    StructuredType.MEDICATION_REQUEST: "Medication Request",
    StructuredType.MEDICATION_STATEMENT: "Medication Statement",
    StructuredType.SYMPTOM: "Symptom",
    StructuredType.DIAGNOSIS: "Diagnosis",
    StructuredType.ENCOUNTER: "Encounter",
    StructuredType.TIME_OF_DEATH: "Time of Death",
    StructuredType.APPOINTMENT: "Appointment",
    StructuredType.FILES: "Files",
    StructuredType.SERVICE_REQUEST: "Service Request",
    StructuredType.CHARGE_ITEM: "Charge Item",
}


def build_structured_questionnaire(structured_type: StructuredType) -> Questionnaire:
    """Build the built-in questionnaire for one structured type."""
    label = STRUCTURED_LABELS[structured_type]
    return Questionnaire(
        id=structured_type.value,
        slug=structured_type.value,
        version="0.0.1",
        title=label,
        status="active",
        subject_type="patient" if structured_type in _PATIENT_SUBJECT_TYPES else "encounter",
        questions=[
            Question(
                id=structured_type.value,
                link_id="1.1",
                text=label,
                type=QuestionType.STRUCTURED,
                structured_type=structured_type,
                required=True,
            )
        ],
    )


STRUCTURED_QUESTIONS: list[dict] = [
    {
        "value": structured_type.value,
        "label": STRUCTURED_LABELS[structured_type],
        "questionnaire": build_structured_questionnaire(structured_type),
    }
    for structured_type in StructuredType
]

FIXED_QUESTIONNAIRES: dict[str, Questionnaire] = {
    entry["questionnaire"].id: entry["questionnaire"] for entry in STRUCTURED_QUESTIONS
}


def get_fixed_questionnaire(slug: str) -> Questionnaire | None:
    """Return a copy of the built-in questionnaire for a slug, if any.

    Copies are returned so callers can never mutate the shared definitions.
    """
    questionnaire = FIXED_QUESTIONNAIRES.get(slug)
    if questionnaire is None:
        return None
    return questionnaire.model_copy(deep=True)
