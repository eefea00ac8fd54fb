"""Tests for enable_when evaluation."""

import pytest

from care_forms.registry import Coding, EnableBehavior, EnableWhen, EnableWhenOperator, QuestionType
from care_forms.responses import QuestionnaireResponse, ResponseValue
from care_forms.visibility import (
    check_condition,
    enabled_question_ids,
    is_enabled,
    normalize_value,
    to_number,
)
from helpers import make_question


def answered(link_id: str, *values: ResponseValue) -> QuestionnaireResponse:
    return QuestionnaireResponse(question_id=link_id, link_id=link_id, values=list(values))


def condition(op: EnableWhenOperator, answer: object = None, question: str = "A") -> EnableWhen:
    return EnableWhen(question=question, operator=op, answer=answer)


class TestNormalization:
    """Tests for answer normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (True, "Yes"),
            (False, "No"),
            (3, "3"),
            (3.0, "3"),
            (2.5, "2.5"),
            ("text", "text"),
            (None, None),
        ],
    )
    def test_normalize_value(self, raw: object, expected: object) -> None:
        """Booleans and numbers become comparable strings."""
        assert normalize_value(raw) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [("12", 12.0), (" 1.5 ", 1.5), (7, 7.0), ("", None), ("abc", None), ("nan", None), (True, None)],
    )
    def test_to_number(self, raw: object, expected: float | None) -> None:
        """Non-numeric answers coerce to None."""
        assert to_number(raw) == expected


class TestCheckCondition:
    """Tests for single condition evaluation."""

    def test_no_answer_fails_every_operator(self) -> None:
        """A dependency without answers fails, whatever the operator."""
        responses = [answered("A")]

        for op in EnableWhenOperator:
            assert check_condition(condition(op, "x"), responses) is False

    def test_missing_dependency_record(self) -> None:
        """A link_id that matches no record fails."""
        assert check_condition(condition(EnableWhenOperator.EXISTS), []) is False

    def test_exists(self) -> None:
        """Any answer entry satisfies exists."""
        responses = [answered("A", ResponseValue(type="string", value="anything"))]

        assert check_condition(condition(EnableWhenOperator.EXISTS), responses)

    def test_exists_flips_on_empty_string(self) -> None:
        """An empty-string entry still counts as an answer for exists."""
        empty = [answered("A")]
        blank = [answered("A", ResponseValue(type="string", value=""))]

        assert not check_condition(condition(EnableWhenOperator.EXISTS), empty)
        assert check_condition(condition(EnableWhenOperator.EXISTS), blank)

    def test_equals_boolean_normalized(self) -> None:
        """A boolean answer matches a boolean condition answer."""
        responses = [answered("A", ResponseValue(type="boolean", value=True))]

        assert check_condition(condition(EnableWhenOperator.EQUALS, True), responses)
        assert check_condition(condition(EnableWhenOperator.EQUALS, "Yes"), responses)
        assert not check_condition(condition(EnableWhenOperator.EQUALS, False), responses)

    def test_equals_number_and_string(self) -> None:
        """Numbers compare equal to their string form."""
        responses = [answered("A", ResponseValue(type="number", value=4.0))]

        assert check_condition(condition(EnableWhenOperator.EQUALS, "4"), responses)
        assert check_condition(condition(EnableWhenOperator.EQUALS, 4), responses)

    def test_equals_any_of_multiple_answers(self) -> None:
        """Repeating answers match when any entry matches."""
        responses = [
            answered(
                "A",
                ResponseValue(type="string", value="red"),
                ResponseValue(type="string", value="blue"),
            )
        ]

        assert check_condition(condition(EnableWhenOperator.EQUALS, "blue"), responses)
        assert not check_condition(condition(EnableWhenOperator.NOT_EQUALS, "blue"), responses)
        assert check_condition(condition(EnableWhenOperator.NOT_EQUALS, "green"), responses)

    def test_coded_choice_answer(self) -> None:
        """An answer carrying only a coding compares by its code."""
        responses = [answered("A", ResponseValue(type="choice", coding=Coding(code="LA33-6")))]

        assert check_condition(condition(EnableWhenOperator.EQUALS, "LA33-6"), responses)

    @pytest.mark.parametrize(
        "op,target,expected",
        [
            (EnableWhenOperator.GREATER, 5, True),
            (EnableWhenOperator.GREATER, 7, False),
            (EnableWhenOperator.LESS, 10, True),
            (EnableWhenOperator.GREATER_OR_EQUALS, 7, True),
            (EnableWhenOperator.LESS_OR_EQUALS, 6.5, False),
        ],
    )
    def test_numeric_operators(self, op: EnableWhenOperator, target: float, expected: bool) -> None:
        """Numeric operators compare answers as numbers."""
        responses = [answered("A", ResponseValue(type="integer", value=7))]

        assert check_condition(condition(op, target), responses) is expected

    def test_numeric_operator_skips_non_numeric(self) -> None:
        """A non-numeric answer never satisfies a numeric comparison."""
        responses = [answered("A", ResponseValue(type="string", value="lots"))]

        assert check_condition(condition(EnableWhenOperator.GREATER, 1), responses) is False

    def test_numeric_operator_non_numeric_target(self) -> None:
        """A non-numeric condition answer fails rather than raising."""
        responses = [answered("A", ResponseValue(type="integer", value=3))]

        assert check_condition(condition(EnableWhenOperator.LESS, "many"), responses) is False


class TestIsEnabled:
    """Tests for question-level visibility."""

    def test_no_conditions(self) -> None:
        """Questions without enable_when are always enabled."""
        assert is_enabled(make_question("B"), [])

    def test_all_behavior_default(self) -> None:
        """Every condition must pass by default."""
        question = make_question(
            "C",
            enable_when=[
                condition(EnableWhenOperator.EXISTS, question="A"),
                condition(EnableWhenOperator.EXISTS, question="B"),
            ],
        )
        responses = [answered("A", ResponseValue(type="string", value="x")), answered("B")]

        assert not is_enabled(question, responses)

    def test_any_behavior(self) -> None:
        """One passing condition is enough with enable_behavior any."""
        question = make_question(
            "C",
            enable_behavior=EnableBehavior.ANY,
            enable_when=[
                condition(EnableWhenOperator.EXISTS, question="A"),
                condition(EnableWhenOperator.EXISTS, question="B"),
            ],
        )
        responses = [answered("A", ResponseValue(type="string", value="x")), answered("B")]

        assert is_enabled(question, responses)

    def test_disabled_group_prunes_subtree(self) -> None:
        """Children of a disabled group are never enabled."""
        questions = [
            make_question("A", QuestionType.BOOLEAN),
            make_question(
                "G",
                QuestionType.GROUP,
                enable_when=[condition(EnableWhenOperator.EQUALS, True)],
                questions=[make_question("child")],
            ),
        ]

        hidden = enabled_question_ids(questions, [answered("A", ResponseValue(type="boolean", value=False))])
        shown = enabled_question_ids(questions, [answered("A", ResponseValue(type="boolean", value=True))])

        assert hidden == {"A"}
        assert shown == {"A", "G", "child"}
