"""Tests for structured request handlers, file encoding and duplicate detection."""

import asyncio
import base64
import inspect
from pathlib import Path

import pytest

from care_forms.registry import StructuredType
from care_forms.structured import (
    STRUCTURED_HANDLERS,
    FileEncodingError,
    HandlerContext,
    MissingContextError,
    compile_structured,
    encode_file_data,
    find_duplicate_codes,
    get_structured_requests,
)


@pytest.fixture
def no_facility() -> HandlerContext:
    """A context with an encounter but no facility."""
    return HandlerContext(patient_id="p1", encounter_id="e1")


@pytest.fixture
def no_encounter() -> HandlerContext:
    """A patient-only context."""
    return HandlerContext(patient_id="p1", facility_id="f1")


def requests_for(structured_type: StructuredType, items: list, context: HandlerContext) -> list:
    return asyncio.run(get_structured_requests(structured_type, items, context))


class TestHandlerRegistry:
    """Tests for the handler table."""

    def test_every_type_has_a_handler(self) -> None:
        """The table covers all structured types."""
        assert set(STRUCTURED_HANDLERS) == set(StructuredType)


class TestUpsertHandlers:
    """Tests for the coded and medication upsert handlers."""

    def test_allergy_upsert(self, context: HandlerContext, valid_allergy: dict) -> None:
        """Allergies are written as one upsert with the encounter set."""
        [request] = requests_for(StructuredType.ALLERGY_INTOLERANCE, [valid_allergy], context)

        assert request.url == "/api/v1/patient/p1/allergy_intolerance/upsert/"
        assert request.method == "POST"
        assert request.reference_id == "allergy_intolerance"
        [datapoint] = request.body["datapoints"]
        assert datapoint["encounter"] == "e1"
        assert datapoint["code"]["code"] == "91936005"
        assert datapoint["clinical_status"] == "active"

    def test_allergy_batch_keeps_entered_in_error(self, context: HandlerContext, valid_allergy: dict) -> None:
        """A normal and a soft-deleted allergy travel in one upsert, both on the encounter."""
        retracted = {**valid_allergy, "verification_status": "entered_in_error"}

        requests = requests_for(StructuredType.ALLERGY_INTOLERANCE, [valid_allergy, retracted], context)

        [request] = requests
        datapoints = request.body["datapoints"]
        assert [d["verification_status"] for d in datapoints] == ["confirmed", "entered_in_error"]
        assert all(d["encounter"] == "e1" for d in datapoints)

    def test_medication_request_sets_patient(self, context: HandlerContext) -> None:
        """Medication requests carry encounter and patient."""
        [request] = requests_for(StructuredType.MEDICATION_REQUEST, [{"status": "active"}], context)

        assert request.url == "/api/v1/patient/p1/medication/request/upsert/"
        assert request.body["datapoints"] == [{"status": "active", "encounter": "e1", "patient": "p1"}]

    def test_medication_statement(self, context: HandlerContext) -> None:
        """Medication statements upsert to their own endpoint."""
        [request] = requests_for(
            StructuredType.MEDICATION_STATEMENT,
            [{"status": "active", "dosage_text": "daily"}],
            context,
        )

        assert request.url == "/api/v1/patient/p1/medication/statement/upsert/"
        assert request.reference_id == "medication_statement"

    def test_symptom(self, context: HandlerContext) -> None:
        """Symptoms upsert with the encounter."""
        [request] = requests_for(StructuredType.SYMPTOM, [{"code": {"code": "x"}}], context)

        assert request.url == "/api/v1/patient/p1/symptom/upsert/"
        assert request.body["datapoints"][0]["encounter"] == "e1"

    def test_diagnoses_only_dirty(self, context: HandlerContext) -> None:
        """Only edited diagnoses are resubmitted."""
        items = [
            {"id": "d1", "code": {"code": "a"}, "dirty": True},
            {"id": "d2", "code": {"code": "b"}},
        ]

        [request] = requests_for(StructuredType.DIAGNOSIS, items, context)

        assert [d["id"] for d in request.body["datapoints"]] == ["d1"]

    def test_encounter_required_for_upserts(self, no_encounter: HandlerContext, valid_allergy: dict) -> None:
        """Encounter-scoped upserts produce nothing without an encounter."""
        assert requests_for(StructuredType.ALLERGY_INTOLERANCE, [valid_allergy], no_encounter) == []


class TestFacilityHandlers:
    """Tests for handlers that write against a facility."""

    def test_encounter_update(self, context: HandlerContext) -> None:
        """Encounters are updated with one PUT per record."""
        item = {
            "status": "in_progress",
            "encounter_class": "imp",
            "period": {"start": "2024-01-01T10:00:00Z"},
            "priority": "routine",
        }

        [request] = requests_for(StructuredType.ENCOUNTER, [item], context)

        assert request.url == "/api/v1/encounter/e1/"
        assert request.method == "PUT"
        assert request.body["organizations"] == []
        assert request.body["patient"] == "p1"
        assert request.body["facility"] == "f1"
        assert request.body["status"] == "in_progress"
        assert request.body["period"] == {"start": "2024-01-01T10:00:00Z", "end": None}

    def test_encounter_without_facility(self, no_facility: HandlerContext) -> None:
        """Updating an encounter without a facility raises."""
        with pytest.raises(MissingContextError):
            compile_structured(StructuredType.ENCOUNTER, [{"status": "planned"}], no_facility)

    def test_encounter_without_encounter_id(self, no_encounter: HandlerContext) -> None:
        """No encounter in context means nothing to update."""
        assert requests_for(StructuredType.ENCOUNTER, [{"status": "planned"}], no_encounter) == []

    def test_appointment_books_first_slot(self, context: HandlerContext) -> None:
        """Only the first appointment is booked."""
        items = [
            {"reason_for_visit": "Follow up", "slot_id": "s1"},
            {"reason_for_visit": "Other", "slot_id": "s2"},
        ]

        [request] = requests_for(StructuredType.APPOINTMENT, items, context)

        assert request.url == "/api/v1/facility/f1/slots/s1/create_appointment/"
        assert request.body == {"reason_for_visit": "Follow up", "patient": "p1"}

    def test_appointment_without_facility(self, no_facility: HandlerContext) -> None:
        """Booking needs a facility."""
        with pytest.raises(MissingContextError):
            compile_structured(StructuredType.APPOINTMENT, [{"slot_id": "s1"}], no_facility)

    def test_service_requests(self, context: HandlerContext) -> None:
        """Each service request applies its activity definition."""
        items = [
            {"activity_definition": "cbc", "service_request": {"title": "CBC"}},
            {"activity_definition": "xray", "service_request": {"title": "X-Ray"}},
        ]

        requests = requests_for(StructuredType.SERVICE_REQUEST, items, context)

        assert len(requests) == 2
        assert all(
            r.url == "/api/v1/facility/f1/service_request/apply_activity_definition/" for r in requests
        )
        assert requests[1].body["activity_definition"] == "xray"
        assert requests[1].body["encounter"] == "e1"

    def test_charge_items(self, context: HandlerContext) -> None:
        """Charge items are upserted per facility."""
        [request] = requests_for(
            StructuredType.CHARGE_ITEM,
            [{"status": "billable", "quantity": 2}],
            context,
        )

        assert request.url == "/api/v1/facility/f1/charge_item/upsert/"
        assert request.body["datapoints"] == [
            {"status": "billable", "quantity": 2.0, "encounter": "e1", "patient": "p1"}
        ]

    def test_charge_items_without_facility(self, no_facility: HandlerContext) -> None:
        """Charge items need a facility."""
        with pytest.raises(MissingContextError):
            compile_structured(StructuredType.CHARGE_ITEM, [{"status": "billable"}], no_facility)

    def test_time_of_death(self, no_encounter: HandlerContext) -> None:
        """Time of death updates the patient."""
        [request] = requests_for(StructuredType.TIME_OF_DEATH, ["2024-05-01T10:00:00Z"], no_encounter)

        assert request.url == "/api/v1/patient/p1/"
        assert request.method == "PUT"
        assert request.body == {"deceased_datetime": "2024-05-01T10:00:00Z"}


class TestFileHandler:
    """Tests for the asynchronous file upload handler."""

    def test_returns_awaitable(self, context: HandlerContext) -> None:
        """The file handler defers encoding to an awaitable."""
        result = compile_structured(
            StructuredType.FILES,
            [{"file_data": b"abc", "name": "scan", "original_name": "scan.pdf"}],
            context,
        )

        assert inspect.isawaitable(result)
        [request] = asyncio.run(result)
        assert request.url == "/api/v1/files/upload-file/"
        assert request.body["file_data"] == base64.b64encode(b"abc").decode()
        assert request.body["encounter"] == "e1"
        assert request.body["original_name"] == "scan.pdf"

    def test_no_encounter(self, no_encounter: HandlerContext) -> None:
        """Files are only uploaded against an encounter."""
        result = compile_structured(StructuredType.FILES, [{"file_data": b"abc"}], no_encounter)

        assert result == []


class TestEncodeFileData:
    """Tests for encode_file_data."""

    def test_bytes(self) -> None:
        """Raw bytes are base64-encoded."""
        assert asyncio.run(encode_file_data(b"hello")) == "aGVsbG8="

    def test_path(self, tmp_path: Path) -> None:
        """Paths are read and encoded."""
        path = tmp_path / "note.txt"
        path.write_bytes(b"hello")

        assert asyncio.run(encode_file_data(path)) == "aGVsbG8="

    def test_missing_path(self, tmp_path: Path) -> None:
        """Unreadable paths raise FileEncodingError."""
        with pytest.raises(FileEncodingError):
            asyncio.run(encode_file_data(tmp_path / "missing.bin"))

    def test_data_url(self) -> None:
        """The data URL prefix is stripped."""
        assert asyncio.run(encode_file_data("data:text/plain;base64,aGVsbG8=")) == "aGVsbG8="

    def test_already_encoded(self) -> None:
        """Base64 strings pass through."""
        assert asyncio.run(encode_file_data("aGVsbG8=")) == "aGVsbG8="

    @pytest.mark.parametrize("value", ["not base64!", "data:text/plain;base64", 42])
    def test_invalid(self, value: object) -> None:
        """Invalid payloads raise FileEncodingError."""
        with pytest.raises(FileEncodingError):
            asyncio.run(encode_file_data(value))


class TestDuplicateCodes:
    """Tests for soft duplicate detection."""

    def test_repeat_reported(self) -> None:
        """A repeated system and code pair is reported at its index."""
        items = [
            {"code": {"system": "sct", "code": "1"}},
            {"code": {"system": "sct", "code": "2"}},
            {"code": {"system": "sct", "code": "1"}},
        ]

        assert find_duplicate_codes(StructuredType.DIAGNOSIS, items) == [(2, "1")]

    def test_entered_in_error_ignored(self) -> None:
        """Soft-deleted records do not count as duplicates."""
        items = [
            {"code": {"code": "1"}, "verification_status": "entered_in_error"},
            {"code": {"code": "1"}},
        ]

        assert find_duplicate_codes(StructuredType.ALLERGY_INTOLERANCE, items) == []

    def test_different_systems(self) -> None:
        """Equal codes from different systems are distinct."""
        items = [{"code": {"system": "a", "code": "1"}}, {"code": {"system": "b", "code": "1"}}]

        assert find_duplicate_codes(StructuredType.SYMPTOM, items) == []

    def test_malformed_records_skipped(self) -> None:
        """Records that do not parse are left to validation."""
        items = [{"code": {"code": "1"}}, {"code": "1"}, {"code": {"code": "1"}}]

        assert find_duplicate_codes(StructuredType.ALLERGY_INTOLERANCE, items) == [(2, "1")]

    def test_uncoded_type(self) -> None:
        """Types without codes never report duplicates."""
        assert find_duplicate_codes(StructuredType.CHARGE_ITEM, [{}, {}]) == []
