"""Request handlers for structured answers.

Each structured type maps onto its own backend resource and write
semantics, so every type has a dedicated handler turning its records into
batch requests. Handlers return a plain list, except the file handler which
returns an awaitable because file payloads are encoded asynchronously.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict

from care_forms.registry.models import StructuredType
from care_forms.structured.encoding import encode_file_data
from care_forms.structured.models import StructuredRecord, coerce_structured_type, parse_items

logger = logging.getLogger(__name__)

FILE_UPLOAD_URL = "/api/v1/files/upload-file/"


class MissingContextError(Exception):
    """Raised when a write is impossible without the facility context."""

    pass


class BatchRequest(BaseModel):
    """One write operation of a batch."""

    url: str
    method: str
    body: dict[str, Any]
    reference_id: str

    model_config = ConfigDict(frozen=True)


class HandlerContext(BaseModel):
    """Identifiers of the resources a submission writes against."""

    patient_id: str
    encounter_id: str | None = None
    facility_id: str | None = None

    model_config = ConfigDict(frozen=True)


HandlerResult = list[BatchRequest] | Awaitable[list[BatchRequest]]
StructuredHandler = Callable[[Sequence[StructuredRecord], HandlerContext], HandlerResult]


def _require_facility(context: HandlerContext, action: str) -> str:
    if not context.facility_id:
        raise MissingContextError(f"Cannot {action} without a facility")
    return context.facility_id


def _upsert(
    structured_type: StructuredType,
    url: str,
    items: Sequence[StructuredRecord],
    **overrides: Any,
) -> list[BatchRequest]:
    return [
        BatchRequest(
            url=url,
            method="POST",
            body={"datapoints": [item.to_payload(**overrides) for item in items]},
            reference_id=structured_type.value,
        )
    ]


def handle_allergies(items: Sequence[StructuredRecord], context: HandlerContext) -> HandlerResult:
    if not context.encounter_id:
        return []
    return _upsert(
        StructuredType.ALLERGY_INTOLERANCE,
        f"/api/v1/patient/{context.patient_id}/allergy_intolerance/upsert/",
        items,
        encounter=context.encounter_id,
    )


def handle_medication_requests(
    items: Sequence[StructuredRecord],
    context: HandlerContext,
) -> HandlerResult:
    if not context.encounter_id:
        return []
    return _upsert(
        StructuredType.MEDICATION_REQUEST,
        f"/api/v1/patient/{context.patient_id}/medication/request/upsert/",
        items,
        encounter=context.encounter_id,
        patient=context.patient_id,
    )


def handle_medication_statements(
    items: Sequence[StructuredRecord],
    context: HandlerContext,
) -> HandlerResult:
    if not context.encounter_id:
        return []
    return _upsert(
        StructuredType.MEDICATION_STATEMENT,
        f"/api/v1/patient/{context.patient_id}/medication/statement/upsert/",
        items,
        encounter=context.encounter_id,
        patient=context.patient_id,
    )


def handle_symptoms(items: Sequence[StructuredRecord], context: HandlerContext) -> HandlerResult:
    if not context.encounter_id:
        return []
    return _upsert(
        StructuredType.SYMPTOM,
        f"/api/v1/patient/{context.patient_id}/symptom/upsert/",
        items,
        encounter=context.encounter_id,
    )


def handle_diagnoses(items: Sequence[StructuredRecord], context: HandlerContext) -> HandlerResult:
    """Upsert only the diagnoses edited in this session (``dirty``)."""
    if not context.encounter_id:
        return []
    return _upsert(
        StructuredType.DIAGNOSIS,
        f"/api/v1/patient/{context.patient_id}/diagnosis/upsert/",
        [item for item in items if getattr(item, "dirty", False)],
        encounter=context.encounter_id,
    )


def handle_encounters(items: Sequence[StructuredRecord], context: HandlerContext) -> HandlerResult:
    """Update the current encounter, one PUT per record.

    Raises:
        MissingContextError: If an encounter is known but no facility is.
    """
    if not context.encounter_id:
        return []
    facility_id = _require_facility(context, "update an encounter")
    requests = []
    for item in items:
        data = item.model_dump(mode="json")
        requests.append(
            BatchRequest(
                url=f"/api/v1/encounter/{context.encounter_id}/",
                method="PUT",
                body={
                    "organizations": [],
                    "patient": context.patient_id,
                    "status": data.get("status"),
                    "encounter_class": data.get("encounter_class"),
                    "period": data.get("period"),
                    "hospitalization": data.get("hospitalization"),
                    "priority": data.get("priority"),
                    "external_identifier": data.get("external_identifier"),
                    "facility": facility_id,
                    "discharge_summary_advice": data.get("discharge_summary_advice"),
                },
                reference_id=StructuredType.ENCOUNTER.value,
            )
        )
    return requests


def handle_appointments(items: Sequence[StructuredRecord], context: HandlerContext) -> HandlerResult:
    """Book a slot for the first appointment record only."""
    if not items:
        return []
    facility_id = _require_facility(context, "book an appointment")
    appointment = items[0]
    slot_id = getattr(appointment, "slot_id", None)
    return [
        BatchRequest(
            url=f"/api/v1/facility/{facility_id}/slots/{slot_id}/create_appointment/",
            method="POST",
            body={
                "reason_for_visit": getattr(appointment, "reason_for_visit", None),
                "patient": context.patient_id,
            },
            reference_id=StructuredType.APPOINTMENT.value,
        )
    ]


async def _encode_files(items: Sequence[StructuredRecord], encounter_id: str) -> list[BatchRequest]:
    encoded = await asyncio.gather(
        *(encode_file_data(getattr(item, "file_data", None)) for item in items)
    )
    return [
        BatchRequest(
            url=FILE_UPLOAD_URL,
            method="POST",
            body=item.to_payload(exclude={"file_data"}, file_data=data, encounter=encounter_id),
            reference_id=StructuredType.FILES.value,
        )
        for item, data in zip(items, encoded)
    ]


def handle_files(items: Sequence[StructuredRecord], context: HandlerContext) -> HandlerResult:
    """Upload every file; encoding happens concurrently when awaited."""
    if not context.encounter_id or not items:
        return []
    return _encode_files(items, context.encounter_id)


def handle_service_requests(
    items: Sequence[StructuredRecord],
    context: HandlerContext,
) -> HandlerResult:
    """Apply one activity definition per record."""
    if not context.encounter_id:
        return []
    facility_id = _require_facility(context, "apply an activity definition")
    return [
        BatchRequest(
            url=f"/api/v1/facility/{facility_id}/service_request/apply_activity_definition/",
            method="POST",
            body=item.to_payload(encounter=context.encounter_id),
            reference_id=StructuredType.SERVICE_REQUEST.value,
        )
        for item in items
    ]


def handle_charge_items(items: Sequence[StructuredRecord], context: HandlerContext) -> HandlerResult:
    if not context.encounter_id:
        return []
    facility_id = _require_facility(context, "create charge items")
    return _upsert(
        StructuredType.CHARGE_ITEM,
        f"/api/v1/facility/{facility_id}/charge_item/upsert/",
        items,
        encounter=context.encounter_id,
        patient=context.patient_id,
    )


def handle_time_of_death(items: Sequence[StructuredRecord], context: HandlerContext) -> HandlerResult:
    return [
        BatchRequest(
            url=f"/api/v1/patient/{context.patient_id}/",
            method="PUT",
            body={"deceased_datetime": item.model_dump(mode="json").get("deceased_datetime")},
            reference_id=StructuredType.TIME_OF_DEATH.value,
        )
        for item in items
    ]


STRUCTURED_HANDLERS: dict[StructuredType, StructuredHandler] = {
    StructuredType.ALLERGY_INTOLERANCE: handle_allergies,
    StructuredType.MEDICATION_REQUEST: handle_medication_requests,
    StructuredType.MEDICATION_STATEMENT: handle_medication_statements,
    StructuredType.SYMPTOM: handle_symptoms,
    StructuredType.DIAGNOSIS: handle_diagnoses,
    StructuredType.ENCOUNTER: handle_encounters,
    StructuredType.APPOINTMENT: handle_appointments,
    StructuredType.FILES: handle_files,
    StructuredType.SERVICE_REQUEST: handle_service_requests,
    StructuredType.CHARGE_ITEM: handle_charge_items,
    StructuredType.TIME_OF_DEATH: handle_time_of_death,
}

if set(STRUCTURED_HANDLERS) != set(StructuredType):
    raise RuntimeError("STRUCTURED_HANDLERS must cover every StructuredType")


def compile_structured(
    structured_type: StructuredType | str,
    items: Sequence[Any],
    context: HandlerContext,
) -> HandlerResult:
    """Dispatch records to the handler of their type.

    Args:
        structured_type: The structured type of the records.
        items: Raw or parsed records.
        context: Patient, encounter and facility identifiers.

    Returns:
        A list of requests, or an awaitable of one for asynchronous handlers.

    Raises:
        UnknownStructuredTypeError: If the type is not a StructuredType.
        MissingContextError: If the handler needs a facility that is absent.
    """
    structured_type = coerce_structured_type(structured_type)
    handler = STRUCTURED_HANDLERS[structured_type]
    result = handler(parse_items(structured_type, items), context)
    logger.debug("Dispatched %d %s record(s)", len(items), structured_type.value)
    return result


async def get_structured_requests(
    structured_type: StructuredType | str,
    items: Sequence[Any],
    context: HandlerContext,
) -> list[BatchRequest]:
    """Compile records to requests, awaiting asynchronous handlers."""
    result = compile_structured(structured_type, items, context)
    if inspect.isawaitable(result):
        return list(await result)
    return list(result)
