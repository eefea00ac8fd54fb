"""Submission orchestrator.

Owns the attached form states and drives a submission through
validate, compile, submit and result mapping. Every state change replaces
the forms list instead of mutating it.
"""

import logging
from collections.abc import Sequence

from care_forms.diagnostics.collector import SubmissionErrorCollector
from care_forms.diagnostics.models import (
    SubmissionReport,
    SubmissionStatus,
    SubmissionWarning,
)
from care_forms.registry.models import Questionnaire
from care_forms.responses.models import QuestionnaireFormState, ResponseValue
from care_forms.responses.state import (
    attach_questionnaire,
    clear_question_errors,
    detach_questionnaire,
    set_form_response,
)
from care_forms.structured.duplicates import CODED_TYPES, find_duplicate_codes
from care_forms.structured.encoding import FileEncodingError
from care_forms.structured.handlers import MissingContextError
from care_forms.submission.batch import BatchClient, BatchTransportError
from care_forms.submission.compiler import CompiledBatch, SubmissionContext, compile_requests
from care_forms.validation.checks import ValidationResult, validate_forms, walk_questions

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Questionnaire submission failed"


class SubmissionOrchestrator:
    """Drives questionnaire submission for one patient/encounter.

    Statuses move Idle -> Validating -> Invalid (back to Idle), or
    Validating -> Compiling -> Submitting -> Succeeded | PartiallyFailed.
    Transport failures and missing context end in Failed.
    """

    def __init__(
        self,
        context: SubmissionContext,
        batch_client: BatchClient,
        forms: Sequence[QuestionnaireFormState] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            context: Patient, encounter and facility of the submission.
            batch_client: Executes compiled batches.
            forms: Already attached forms, if any.
        """
        self.context = context
        self.batch_client = batch_client

        self._forms: list[QuestionnaireFormState] = list(forms or [])
        self._status = SubmissionStatus.IDLE
        self._history: list[SubmissionStatus] = [SubmissionStatus.IDLE]
        self._dirty = False
        self.last_report: SubmissionReport | None = None

    @property
    def forms(self) -> list[QuestionnaireFormState]:
        """The attached forms (a new list; the states themselves are frozen)."""
        return list(self._forms)

    @property
    def status(self) -> SubmissionStatus:
        return self._status

    @property
    def status_history(self) -> list[SubmissionStatus]:
        return list(self._history)

    @property
    def is_dirty(self) -> bool:
        """Whether responses changed since the last successful submission."""
        return self._dirty

    def _transition(self, status: SubmissionStatus) -> None:
        logger.info("Submission status %s -> %s", self._status.value, status.value)
        self._status = status
        self._history.append(status)

    def attach(self, questionnaire: Questionnaire) -> None:
        """Attach a questionnaire with empty responses (no-op if attached)."""
        self._forms = attach_questionnaire(self._forms, questionnaire)

    def detach(self, questionnaire_id: str) -> None:
        self._forms = detach_questionnaire(self._forms, questionnaire_id)

    def get_form(self, questionnaire_id: str) -> QuestionnaireFormState | None:
        for form in self._forms:
            if form.questionnaire.id == questionnaire_id:
                return form
        return None

    def update_response(
        self,
        questionnaire_id: str,
        question_id: str,
        values: Sequence[ResponseValue | dict],
        note: str | None = None,
    ) -> None:
        """Replace the answers of one question.

        Raises:
            QuestionnaireNotAttachedError: If the questionnaire is not attached.
        """
        self._forms = set_form_response(self._forms, questionnaire_id, question_id, values, note)
        self._dirty = True

    def clear_error(self, questionnaire_id: str, question_id: str) -> None:
        """Dismiss the errors shown for one question."""
        self._forms = clear_question_errors(self._forms, questionnaire_id, question_id)

    def validate(self) -> ValidationResult:
        """Clear all errors and re-derive them across every attached form.

        Returns:
            All errors, in form then question order, with the first
            offending question id.
        """
        self._forms = validate_forms(self._forms)
        errors = [error for form in self._forms for error in form.errors]
        return ValidationResult(
            errors=errors,
            first_error_id=errors[0].question_id if errors else None,
        )

    async def compile(self) -> CompiledBatch:
        """Compile the current responses without submitting them.

        Raises:
            MissingContextError: If a handler needs a facility that is absent.
            FileEncodingError: If a file payload cannot be encoded.
        """
        return await compile_requests(self._forms, self.context)

    def duplicate_warnings(self) -> list[SubmissionWarning]:
        """Report repeated codes in allergy, symptom and diagnosis lists."""
        warnings: list[SubmissionWarning] = []
        for form in self._forms:
            for question in walk_questions(form.questionnaire.questions, form.responses):
                if question.structured_type not in CODED_TYPES:
                    continue
                response = form.get_response(question.id)
                if response is None:
                    continue
                for index, code in find_duplicate_codes(question.structured_type, response.structured_items):
                    warnings.append(
                        SubmissionWarning(
                            code="DUPLICATE_CODE",
                            message=f"Duplicate code {code} in {question.text or question.id}",
                            questionnaire_id=form.questionnaire.id,
                            question_id=question.id,
                            index=index,
                        )
                    )
        for warning in warnings:
            logger.warning("%s (questionnaire %s)", warning.message, warning.questionnaire_id)
        return warnings

    def _finish(self, report: SubmissionReport) -> SubmissionReport:
        self.last_report = report
        return report

    def _fail(
        self,
        exc: Exception,
        warnings: list[SubmissionWarning],
        request_count: int = 0,
    ) -> SubmissionReport:
        self._transition(SubmissionStatus.FAILED)
        return self._finish(
            SubmissionReport(
                status=SubmissionStatus.FAILED,
                request_count=request_count,
                warnings=warnings,
                message=f"{FAILURE_MESSAGE}: {exc}",
            )
        )

    async def submit(self) -> SubmissionReport:
        """Validate, compile and submit every attached form.

        Local errors abort before any network call. Server failures are
        mapped back onto the forms; attributable ones land on the question
        that caused them.

        Returns:
            The SubmissionReport of this attempt.
        """
        self._transition(SubmissionStatus.VALIDATING)
        validation = self.validate()
        warnings = self.duplicate_warnings()

        if not validation.valid:
            logger.info(
                "Validation found %d error(s); first at %s",
                validation.error_count,
                validation.first_error_id,
            )
            self._transition(SubmissionStatus.INVALID)
            report = SubmissionReport(
                status=SubmissionStatus.INVALID,
                validation_errors=validation.errors,
                first_error_id=validation.first_error_id,
                warnings=warnings,
            )
            self._transition(SubmissionStatus.IDLE)
            return self._finish(report)

        self._transition(SubmissionStatus.COMPILING)
        try:
            compiled = await self.compile()
        except (MissingContextError, FileEncodingError) as e:
            logger.error("Could not compile submission: %s", e)
            return self._fail(e, warnings)

        if not compiled.requests:
            logger.info("Nothing to submit")
            self._dirty = False
            self._transition(SubmissionStatus.SUCCEEDED)
            return self._finish(SubmissionReport(status=SubmissionStatus.SUCCEEDED, warnings=warnings))

        self._transition(SubmissionStatus.SUBMITTING)
        try:
            response = await self.batch_client.execute(compiled.requests)
        except BatchTransportError as e:
            logger.error("Batch submission failed", exc_info=e)
            return self._fail(e, warnings, request_count=len(compiled.requests))

        collector = SubmissionErrorCollector(self._forms, compiled.requests, compiled.origins)
        collector.collect(response.results)

        if collector.failed_count == 0:
            self._forms = [form.model_copy(update={"errors": []}) for form in self._forms]
            self._dirty = False
            status = SubmissionStatus.SUCCEEDED
        else:
            self._forms = collector.apply_to_forms(self._forms)
            status = SubmissionStatus.PARTIALLY_FAILED

        self._transition(status)
        return self._finish(
            SubmissionReport(
                status=status,
                request_count=len(compiled.requests),
                succeeded_count=collector.succeeded_count,
                failed_count=collector.failed_count,
                validation_errors=[error for form in self._forms for error in form.errors],
                server_errors=collector.server_errors,
                warnings=warnings,
                message=None if status == SubmissionStatus.SUCCEEDED else FAILURE_MESSAGE,
            )
        )
