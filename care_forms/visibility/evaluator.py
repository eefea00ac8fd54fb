"""Conditional visibility evaluation.

A question's enable_when conditions reference other questions by link_id.
Answers are normalized before comparison so booleans and numbers stored in
different shapes compare uniformly with the configured condition answer.
"""

import math
import operator
from collections.abc import Callable, Sequence
from typing import Any

from care_forms.registry.models import EnableBehavior, EnableWhen, EnableWhenOperator, Question
from care_forms.responses.models import QuestionnaireResponse

_NUMERIC_COMPARATORS: dict[EnableWhenOperator, Callable[[float, float], bool]] = {
    EnableWhenOperator.GREATER: operator.gt,
    EnableWhenOperator.LESS: operator.lt,
    EnableWhenOperator.GREATER_OR_EQUALS: operator.ge,
    EnableWhenOperator.LESS_OR_EQUALS: operator.le,
}


def normalize_value(value: Any) -> Any:
    """Normalize an answer for comparison.

    Booleans become "Yes"/"No" and numbers their string form (integral
    floats without a trailing ".0"). Anything else is returned unchanged.
    """
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, int):
        return str(value)
    return value


def to_number(value: Any) -> float | None:
    """Coerce a normalized answer to a number, or None when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number):
        return None
    return number


def _answers_for(condition: EnableWhen, responses: Sequence[QuestionnaireResponse]) -> list[Any]:
    for response in responses:
        if response.link_id == condition.question:
            answers = []
            for entry in response.values:
                raw = entry.value
                # choice answers may carry only a coding
                if raw is None and entry.coding is not None:
                    raw = entry.coding.code
                answers.append(normalize_value(raw))
            return answers
    return []


def check_condition(condition: EnableWhen, responses: Sequence[QuestionnaireResponse]) -> bool:
    """Evaluate a single enable_when condition.

    A dependent question without any answer entry fails every operator.
    Numeric operators skip answers that are not numeric instead of raising.
    """
    answers = _answers_for(condition, responses)
    if not answers:
        return False

    op = condition.operator
    if op == EnableWhenOperator.EXISTS:
        return True

    if op in _NUMERIC_COMPARATORS:
        target = to_number(condition.answer)
        if target is None:
            return False
        compare = _NUMERIC_COMPARATORS[op]
        for answer in answers:
            number = to_number(answer)
            if number is not None and compare(number, target):
                return True
        return False

    expected = normalize_value(condition.answer)
    if op == EnableWhenOperator.EQUALS:
        return expected in answers
    if op == EnableWhenOperator.NOT_EQUALS:
        return expected not in answers
    return True


def is_enabled(question: Question, responses: Sequence[QuestionnaireResponse]) -> bool:
    """Decide whether a question is active given the current responses.

    Args:
        question: The question to check.
        responses: All response records of the questionnaire.

    Returns:
        True when the question has no conditions, or when its conditions pass
        under its enable_behavior ("all" by default, or "any").
    """
    if not question.enable_when:
        return True
    results = (check_condition(condition, responses) for condition in question.enable_when)
    if question.enable_behavior == EnableBehavior.ANY:
        return any(results)
    return all(results)


def enabled_question_ids(
    questions: Sequence[Question],
    responses: Sequence[QuestionnaireResponse],
) -> set[str]:
    """IDs of every active question; a disabled group disables its subtree."""
    enabled: set[str] = set()
    for question in questions:
        if not is_enabled(question, responses):
            continue
        enabled.add(question.id)
        if question.is_group:
            enabled |= enabled_question_ids(question.questions, responses)
    return enabled
