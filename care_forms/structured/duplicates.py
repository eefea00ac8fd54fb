"""Soft detection of repeated codes in coded structured lists.

Duplicates are reported, never rejected: records loaded from history may
legitimately repeat a code, so callers surface these as warnings only.
"""

from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from care_forms.registry.models import StructuredType
from care_forms.structured.models import coerce_structured_type, parse_item

CODED_TYPES = frozenset(
    {
        StructuredType.ALLERGY_INTOLERANCE,
        StructuredType.SYMPTOM,
        StructuredType.DIAGNOSIS,
    }
)


def find_duplicate_codes(
    structured_type: StructuredType | str,
    items: Sequence[Any],
) -> list[tuple[int, str]]:
    """Find records whose code repeats an earlier active record.

    Args:
        structured_type: Type of the records; only allergies, symptoms and
            diagnoses are coded lists.
        items: Raw or parsed records.

    Returns:
        ``(index, code)`` for every repeat, in list order.
    """
    structured_type = coerce_structured_type(structured_type)
    if structured_type not in CODED_TYPES:
        return []

    seen: set[tuple[str | None, str]] = set()
    duplicates: list[tuple[int, str]] = []
    for index, item in enumerate(items):
        try:
            record = parse_item(structured_type, item)
        except ValidationError:
            # malformed records are reported by validation
            continue
        code = getattr(record, "code", None)
        if record.is_entered_in_error or code is None or not code.code:
            continue
        key = (code.system, code.code)
        if key in seen:
            duplicates.append((index, code.code))
        else:
            seen.add(key)
    return duplicates
