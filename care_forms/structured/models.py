"""Domain records captured by structured questions.

Every record allows extra fields so backend attributes the engine does not
model travel unchanged into request bodies. All fields are optional here;
missing required fields are reported by the structured validators.
"""

from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from care_forms.registry.models import Coding, StructuredType

ENTERED_IN_ERROR = "entered_in_error"

DateLike = datetime | date | str


class UnknownStructuredTypeError(Exception):
    """Raised when a structured type name is not one of StructuredType."""

    def __init__(self, structured_type: object) -> None:
        self.structured_type = structured_type
        super().__init__(f"Unknown structured type: {structured_type}")


class StructuredRecord(BaseModel):
    """Base class for structured domain records."""

    model_config = ConfigDict(extra="allow")

    @property
    def is_entered_in_error(self) -> bool:
        """Whether the record is soft-deleted (status or verification status)."""
        return ENTERED_IN_ERROR in (
            getattr(self, "status", None),
            getattr(self, "verification_status", None),
        )

    def to_payload(self, exclude: set[str] | None = None, **overrides: Any) -> dict[str, Any]:
        """Dump the fields that were set (extras included) plus overrides."""
        payload = self.model_dump(mode="json", exclude_unset=True, exclude=exclude)
        payload.update(overrides)
        return payload


class Period(BaseModel):
    """A start/end interval."""

    start: DateLike | None = None
    end: DateLike | None = None

    model_config = ConfigDict(extra="allow")


class Duration(BaseModel):
    """A value with a time unit, e.g. 5 days."""

    value: float | None = None
    unit: str | None = None

    model_config = ConfigDict(extra="allow")


class TimingRepeat(BaseModel):
    frequency: int | None = None
    period: float | None = None
    period_unit: str | None = None
    bounds_duration: Duration | None = None

    model_config = ConfigDict(extra="allow")


class Timing(BaseModel):
    repeat: TimingRepeat | None = None
    code: Coding | None = None

    model_config = ConfigDict(extra="allow")


class DoseAndRate(BaseModel):
    type: str | None = None
    dose_quantity: dict[str, Any] | None = None
    dose_range: dict[str, Any] | None = None

    model_config = ConfigDict(extra="allow")


class DosageInstruction(BaseModel):
    """How a requested medication should be taken."""

    sequence: int | None = None
    text: str | None = None
    patient_instruction: str | None = None
    as_needed_boolean: bool | None = None
    as_needed_for: Coding | None = None
    timing: Timing | None = None
    site: Coding | None = None
    route: Coding | None = None
    method: Coding | None = None
    dose_and_rate: DoseAndRate | None = None

    model_config = ConfigDict(extra="allow")


class AllergyIntolerance(StructuredRecord):
    id: str | None = None
    code: Coding | None = None
    clinical_status: str | None = None
    verification_status: str | None = None
    category: str | None = None
    criticality: str | None = None
    last_occurrence: DateLike | None = None
    note: str | None = None
    encounter: str | None = None


class Symptom(StructuredRecord):
    id: str | None = None
    code: Coding | None = None
    clinical_status: str | None = None
    verification_status: str | None = None
    severity: str | None = None
    onset: dict[str, Any] | None = None
    note: str | None = None
    encounter: str | None = None


class Diagnosis(StructuredRecord):
    """A diagnosis; only ``dirty`` (edited) records are resubmitted."""

    id: str | None = None
    code: Coding | None = None
    clinical_status: str | None = None
    verification_status: str | None = None
    category: str | None = None
    onset: dict[str, Any] | None = None
    note: str | None = None
    encounter: str | None = None
    dirty: bool = False


class MedicationRequest(StructuredRecord):
    id: str | None = None
    status: str | None = None
    status_reason: str | None = None
    intent: str | None = None
    category: str | None = None
    priority: str | None = None
    do_not_perform: bool | None = None
    medication: Coding | None = None
    dosage_instruction: list[DosageInstruction] = Field(default_factory=list)
    authored_on: DateLike | None = None
    note: str | None = None
    encounter: str | None = None
    patient: str | None = None


class MedicationStatement(StructuredRecord):
    id: str | None = None
    status: str | None = None
    reason: str | None = None
    medication: Coding | None = None
    dosage_text: str | None = None
    effective_period: Period | None = None
    information_source: str | None = None
    note: str | None = None
    encounter: str | None = None
    patient: str | None = None


class Encounter(StructuredRecord):
    status: str | None = None
    encounter_class: str | None = None
    period: Period | None = None
    hospitalization: dict[str, Any] | None = None
    priority: str | None = None
    external_identifier: str | None = None
    discharge_summary_advice: str | None = None
    facility: str | None = None


class Appointment(StructuredRecord):
    reason_for_visit: str | None = None
    slot_id: str | None = None


class FileUpload(StructuredRecord):
    """A file to upload.

    ``file_data`` holds raw bytes, a filesystem path, a ``data:`` URL, or an
    already base64-encoded string. It is encoded right before compiling.
    """

    file_data: Any = None
    name: str | None = None
    original_name: str | None = None
    file_type: str | None = None
    file_category: str | None = None
    associating_id: str | None = None


class ServiceRequestSpec(BaseModel):
    """The service request created when an activity definition is applied."""

    title: str | None = None
    status: str | None = None
    intent: str | None = None
    priority: str | None = None
    category: str | None = None
    code: Coding | None = None
    do_not_perform: bool | None = None
    note: str | None = None
    body_site: Coding | None = None
    patient_instruction: str | None = None
    locations: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")


class ServiceRequest(StructuredRecord):
    """Application of an activity definition, producing a service request."""

    service_request: ServiceRequestSpec | None = None
    activity_definition: str | None = None
    encounter: str | None = None

    @property
    def is_entered_in_error(self) -> bool:
        request = self.service_request
        if request is not None and request.status == ENTERED_IN_ERROR:
            return True
        return super().is_entered_in_error


class ChargeItem(StructuredRecord):
    id: str | None = None
    title: str | None = None
    status: str | None = None
    quantity: float | None = None
    charge_item_definition: str | None = None
    note: str | None = None
    encounter: str | None = None


class TimeOfDeath(StructuredRecord):
    """Time of death; a bare datetime (or ISO string) is accepted as input."""

    deceased_datetime: DateLike | None = None

    @model_validator(mode="before")
    @classmethod
    def wrap_scalar(cls, data: Any) -> Any:
        if isinstance(data, (str, datetime, date)):
            return {"deceased_datetime": data}
        return data


STRUCTURED_MODELS: dict[StructuredType, type[StructuredRecord]] = {
    StructuredType.ALLERGY_INTOLERANCE: AllergyIntolerance,
    StructuredType.MEDICATION_REQUEST: MedicationRequest,
    StructuredType.MEDICATION_STATEMENT: MedicationStatement,
    StructuredType.SYMPTOM: Symptom,
    StructuredType.DIAGNOSIS: Diagnosis,
    StructuredType.ENCOUNTER: Encounter,
    StructuredType.APPOINTMENT: Appointment,
    StructuredType.FILES: FileUpload,
    StructuredType.SERVICE_REQUEST: ServiceRequest,
    StructuredType.CHARGE_ITEM: ChargeItem,
    StructuredType.TIME_OF_DEATH: TimeOfDeath,
}

if set(STRUCTURED_MODELS) != set(StructuredType):
    raise RuntimeError("STRUCTURED_MODELS must cover every StructuredType")


def coerce_structured_type(structured_type: StructuredType | str) -> StructuredType:
    """Convert a type name into a StructuredType.

    Raises:
        UnknownStructuredTypeError: If the name is not a known structured type.
    """
    if isinstance(structured_type, StructuredType):
        return structured_type
    try:
        return StructuredType(structured_type)
    except ValueError:
        raise UnknownStructuredTypeError(structured_type) from None


def parse_item(structured_type: StructuredType | str, item: Any) -> StructuredRecord:
    """Parse one raw item into the record model of a type.

    Raises:
        pydantic.ValidationError: If the item does not fit the model.
    """
    model = STRUCTURED_MODELS[coerce_structured_type(structured_type)]
    return item if isinstance(item, model) else model.model_validate(item)


def parse_items(
    structured_type: StructuredType | str,
    items: Sequence[Any],
) -> list[StructuredRecord]:
    """Parse raw items (dicts or records) into the record model of a type.

    Args:
        structured_type: The structured type the items belong to.
        items: Dicts, scalars (time of death), or already-parsed records.

    Returns:
        Records in the same order as ``items``.
    """
    structured_type = coerce_structured_type(structured_type)
    return [parse_item(structured_type, item) for item in items]
