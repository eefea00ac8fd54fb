"""Per-type validators for structured answers.

Each validator receives the parsed records of one structured question and
returns QuestionValidationError values scoped by ``field_key`` and the
record's ``index``. Records marked entered_in_error are never validated.
Most types are described by a declarative FieldDefinition table.
"""

from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime, time, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from care_forms.registry.models import StructuredType
from care_forms.responses.models import QuestionValidationError
from care_forms.structured.models import (
    ENTERED_IN_ERROR,
    DosageInstruction,
    StructuredRecord,
    coerce_structured_type,
    parse_item,
)

FIELD_REQUIRED = "This field is required"
INVALID_VALUE = "Invalid value"
INVALID_DATE = "Invalid date"
START_DATE_REQUIRED = "Start date is required"
END_BEFORE_START = "End date must be after start date"


class FieldDefinition(BaseModel):
    """A declarative rule for one field of a structured record.

    ``check`` returns False for an invalid value, or raises ValueError
    with a user-facing message.
    """

    key: str
    required: bool = False
    check: Callable[[Any], bool] | None = None
    message: str = FIELD_REQUIRED

    model_config = ConfigDict(frozen=True)


StructuredValidator = Callable[[Sequence[StructuredRecord], str], list[QuestionValidationError]]


def _field_value(data: Any, key: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(key)
    return getattr(data, key, None)


def validate_fields(
    data: Any,
    question_id: str,
    fields: Sequence[FieldDefinition],
    index: int,
) -> list[QuestionValidationError]:
    """Apply a field-definition table to one record.

    Args:
        data: A record or a mapping of field key to value.
        question_id: The structured question the record belongs to.
        fields: Field rules, checked in order.
        index: Position of the record in the question's list.

    Returns:
        One error per failing field.
    """
    errors: list[QuestionValidationError] = []
    for field in fields:
        value = _field_value(data, field.key)
        if field.required and not value:
            message: str | None = FIELD_REQUIRED
        elif field.check is None:
            message = None
        else:
            try:
                message = None if field.check(value) else field.message
            except ValueError as exc:
                message = str(exc)
        if message is not None:
            errors.append(
                QuestionValidationError(
                    question_id=question_id,
                    error=message,
                    field_key=field.key,
                    index=index,
                )
            )
    return errors


def parse_date(value: Any) -> datetime:
    """Parse a date, datetime or ISO string into a timezone-aware datetime.

    Naive values are taken as UTC so mixed inputs stay comparable.

    Raises:
        ValueError: If the value is not a recognizable date.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValueError(INVALID_DATE) from None
    else:
        raise ValueError(INVALID_DATE)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _check_period(period: Any) -> bool:
    start = _field_value(period, "start")
    if not start:
        raise ValueError(START_DATE_REQUIRED)
    end = _field_value(period, "end")
    if end and parse_date(end) < parse_date(start):
        raise ValueError(END_BEFORE_START)
    return True


def _has_dose(instruction: DosageInstruction) -> bool:
    dose = instruction.dose_and_rate
    return dose is not None and bool(dose.dose_quantity or dose.dose_range)


def _has_frequency(instruction: DosageInstruction) -> bool:
    return instruction.timing is not None or bool(instruction.as_needed_boolean)


def _has_consistent_duration(instruction: DosageInstruction) -> bool:
    timing = instruction.timing
    if timing is None or timing.repeat is None or timing.repeat.bounds_duration is None:
        return True
    duration = timing.repeat.bounds_duration
    return (duration.value is None) == (duration.unit is None)


ALLERGY_FIELDS = [
    FieldDefinition(key="code", required=True),
    FieldDefinition(key="clinical_status", required=True),
    FieldDefinition(key="verification_status", required=True),
]

SYMPTOM_FIELDS = ALLERGY_FIELDS
DIAGNOSIS_FIELDS = ALLERGY_FIELDS

MEDICATION_REQUEST_FIELDS = [
    FieldDefinition(key="dosage_instruction.dose", required=True, check=_has_dose),
    FieldDefinition(key="dosage_instruction.frequency", required=True, check=_has_frequency),
    FieldDefinition(key="dosage_instruction.duration", check=_has_consistent_duration),
]

MEDICATION_STATEMENT_FIELDS = [
    FieldDefinition(key="dosage_text", required=True),
    FieldDefinition(key="effective_period", required=True, check=_check_period),
]

ENCOUNTER_FIELDS = [
    FieldDefinition(key="status", required=True),
    FieldDefinition(key="encounter_class", required=True),
    FieldDefinition(key="period", required=True, check=_check_period),
    FieldDefinition(key="priority", required=True),
]

APPOINTMENT_FIELDS = [
    FieldDefinition(key="reason_for_visit", required=True),
    FieldDefinition(key="slot_id", required=True),
]

FILE_FIELDS = [
    FieldDefinition(key="file_data", required=True),
    FieldDefinition(key="name", required=True),
    FieldDefinition(key="original_name", required=True),
]

SERVICE_REQUEST_FIELDS = [
    FieldDefinition(key="title", required=True),
    FieldDefinition(key="status", required=True),
    FieldDefinition(key="intent", required=True),
    FieldDefinition(key="priority", required=True),
    FieldDefinition(key="category", required=True),
    FieldDefinition(key="code", required=True),
]

CHARGE_ITEM_FIELDS = [
    FieldDefinition(key="status", required=True),
    FieldDefinition(key="quantity", required=True),
]


def _table_validator(fields: Sequence[FieldDefinition]) -> StructuredValidator:
    def validate(items: Sequence[StructuredRecord], question_id: str) -> list[QuestionValidationError]:
        errors: list[QuestionValidationError] = []
        for index, item in enumerate(items):
            if item.is_entered_in_error:
                continue
            errors.extend(validate_fields(item, question_id, fields, index))
        return errors

    return validate


def validate_medication_requests(
    items: Sequence[StructuredRecord],
    question_id: str,
) -> list[QuestionValidationError]:
    """Require a dose and a frequency on each request's first dosage instruction."""
    errors: list[QuestionValidationError] = []
    for index, item in enumerate(items):
        if item.is_entered_in_error:
            continue
        if not item.dosage_instruction:
            errors.append(
                QuestionValidationError(
                    question_id=question_id,
                    error=FIELD_REQUIRED,
                    field_key="dosage_instruction",
                    index=index,
                )
            )
            continue
        instruction = item.dosage_instruction[0]
        data = {field.key: instruction for field in MEDICATION_REQUEST_FIELDS}
        errors.extend(validate_fields(data, question_id, MEDICATION_REQUEST_FIELDS, index))
    return errors


def validate_appointments(
    items: Sequence[StructuredRecord],
    question_id: str,
) -> list[QuestionValidationError]:
    """Appointments are cardinality-1: only the first record is checked."""
    if not items or items[0].is_entered_in_error:
        return []
    return validate_fields(items[0], question_id, APPOINTMENT_FIELDS, 0)


def validate_service_requests(
    items: Sequence[StructuredRecord],
    question_id: str,
) -> list[QuestionValidationError]:
    """Check the nested service request carried by each application."""
    errors: list[QuestionValidationError] = []
    for index, item in enumerate(items):
        if item.is_entered_in_error:
            continue
        data = item.service_request if item.service_request is not None else item
        errors.extend(validate_fields(data, question_id, SERVICE_REQUEST_FIELDS, index))
    return errors


STRUCTURED_VALIDATORS: dict[StructuredType, StructuredValidator | None] = {
    StructuredType.ALLERGY_INTOLERANCE: _table_validator(ALLERGY_FIELDS),
    StructuredType.MEDICATION_REQUEST: validate_medication_requests,
    StructuredType.MEDICATION_STATEMENT: _table_validator(MEDICATION_STATEMENT_FIELDS),
    StructuredType.SYMPTOM: _table_validator(SYMPTOM_FIELDS),
    StructuredType.DIAGNOSIS: _table_validator(DIAGNOSIS_FIELDS),
    StructuredType.ENCOUNTER: _table_validator(ENCOUNTER_FIELDS),
    StructuredType.APPOINTMENT: validate_appointments,
    StructuredType.FILES: _table_validator(FILE_FIELDS),
    StructuredType.SERVICE_REQUEST: validate_service_requests,
    StructuredType.CHARGE_ITEM: _table_validator(CHARGE_ITEM_FIELDS),
    # time of death has nothing to check beyond the required answer itself
    StructuredType.TIME_OF_DEATH: None,
}

if set(STRUCTURED_VALIDATORS) != set(StructuredType):
    raise RuntimeError("STRUCTURED_VALIDATORS must cover every StructuredType")


def _is_marked_entered_in_error(item: Any) -> bool:
    return ENTERED_IN_ERROR in (
        _field_value(item, "status"),
        _field_value(item, "verification_status"),
    )


def shape_errors(exc: ValidationError, question_id: str, index: int) -> list[QuestionValidationError]:
    """Turn a record's parse failure into errors keyed by the offending field."""
    return [
        QuestionValidationError(
            question_id=question_id,
            error=INVALID_VALUE,
            field_key=".".join(str(part) for part in error["loc"]) or None,
            index=index,
        )
        for error in exc.errors()
    ]


def validate_structured(
    structured_type: StructuredType | str,
    items: Sequence[Any],
    question_id: str,
) -> list[QuestionValidationError]:
    """Validate the records of one structured question.

    Records that do not fit their type's model are reported with
    ``INVALID_VALUE`` per offending field; the rest go through the type's
    validator.

    Args:
        structured_type: The question's structured type.
        items: Raw or parsed records.
        question_id: The question the errors are keyed to.

    Returns:
        Errors for every failing field of every active record, in record
        order; shape errors only for types without a registered validator.
    """
    structured_type = coerce_structured_type(structured_type)
    errors: list[QuestionValidationError] = []
    records: list[StructuredRecord] = []
    positions: list[int] = []
    for index, item in enumerate(items):
        try:
            record = parse_item(structured_type, item)
        except ValidationError as exc:
            if not _is_marked_entered_in_error(item):
                errors.extend(shape_errors(exc, question_id, index))
            continue
        records.append(record)
        positions.append(index)

    validator = STRUCTURED_VALIDATORS[structured_type]
    if validator is not None:
        for error in validator(records, question_id):
            if error.index is not None:
                error = error.model_copy(update={"index": positions[error.index]})
            errors.append(error)

    return sorted(errors, key=lambda error: -1 if error.index is None else error.index)
