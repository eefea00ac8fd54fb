"""Structural checks on questionnaire definitions.

These catch authoring mistakes the JSON schema cannot express, such as
enable_when conditions pointing at a link_id that does not exist.
"""

from collections import Counter

from care_forms.registry.models import Questionnaire, QuestionType
from care_forms.responses.state import iter_questions


def check_definition(questionnaire: Questionnaire) -> list[str]:
    """Check a questionnaire definition for structural problems.

    Args:
        questionnaire: The definition to check.

    Returns:
        Human-readable problems, empty when the definition is sound.
    """
    problems: list[str] = []
    questions = list(iter_questions(questionnaire.questions))
    link_ids = {q.link_id for q in questions}

    for question in questions:
        label = f"Question {question.id}"
        if question.type == QuestionType.STRUCTURED and question.structured_type is None:
            problems.append(f"{label}: structured question has no structured_type")
        if question.type != QuestionType.STRUCTURED and question.structured_type is not None:
            problems.append(f"{label}: structured_type set on a {question.type.value} question")
        if question.is_group and not question.questions:
            problems.append(f"{label}: group has no child questions")
        if not question.is_group and question.questions:
            problems.append(f"{label}: only groups may have child questions")
        if question.answer_option and question.answer_value_set:
            problems.append(f"{label}: answer_option and answer_value_set are mutually exclusive")
        for condition in question.enable_when:
            if condition.question not in link_ids:
                problems.append(
                    f"{label}: enable_when references unknown link_id {condition.question}"
                )

    for attr in ("id", "link_id"):
        counts = Counter(getattr(q, attr) for q in questions)
        for value, count in sorted(counts.items()):
            if count > 1:
                problems.append(f"Duplicate {attr}: {value} ({count} occurrences)")

    return problems
