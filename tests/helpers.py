"""Builders and fakes shared by the test modules."""

from collections.abc import Sequence

from care_forms.registry import Question, QuestionType
from care_forms.responses import ResponseValue
from care_forms.structured import BatchRequest
from care_forms.submission import BatchResponse, BatchResult


class FakeBatchClient:
    """BatchClient that records requests and answers with canned results.

    Without canned results every request succeeds with status 200.
    """

    def __init__(
        self,
        results: list[BatchResult] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.results = results
        self.error = error
        self.calls: list[list[BatchRequest]] = []

    async def execute(self, requests: Sequence[BatchRequest]) -> BatchResponse:
        self.calls.append(list(requests))
        if self.error is not None:
            raise self.error
        if self.results is None:
            return BatchResponse(
                results=[
                    BatchResult(reference_id=r.reference_id, status_code=200, data={})
                    for r in requests
                ]
            )
        return BatchResponse(results=self.results)


def make_question(
    question_id: str,
    type: QuestionType = QuestionType.STRING,
    **kwargs,
) -> Question:
    """Build a question whose link_id defaults to its id."""
    kwargs.setdefault("link_id", question_id)
    kwargs.setdefault("text", question_id.replace("_", " ").title())
    return Question(id=question_id, type=type, **kwargs)


def string_value(value: str) -> ResponseValue:
    return ResponseValue(type="string", value=value)
