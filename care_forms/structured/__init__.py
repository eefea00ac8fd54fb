"""Structured answers: domain records, validators and request handlers."""

from care_forms.structured.duplicates import find_duplicate_codes
from care_forms.structured.encoding import FileEncodingError, encode_file_data
from care_forms.structured.handlers import (
    STRUCTURED_HANDLERS,
    BatchRequest,
    HandlerContext,
    MissingContextError,
    compile_structured,
    get_structured_requests,
)
from care_forms.structured.models import (
    ENTERED_IN_ERROR,
    STRUCTURED_MODELS,
    StructuredRecord,
    UnknownStructuredTypeError,
    parse_item,
    parse_items,
)
from care_forms.structured.validators import (
    STRUCTURED_VALIDATORS,
    FieldDefinition,
    validate_fields,
    validate_structured,
)

__all__ = [
    "BatchRequest",
    "ENTERED_IN_ERROR",
    "FieldDefinition",
    "FileEncodingError",
    "HandlerContext",
    "MissingContextError",
    "STRUCTURED_HANDLERS",
    "STRUCTURED_MODELS",
    "STRUCTURED_VALIDATORS",
    "StructuredRecord",
    "UnknownStructuredTypeError",
    "compile_structured",
    "encode_file_data",
    "find_duplicate_codes",
    "get_structured_requests",
    "parse_item",
    "parse_items",
    "validate_fields",
    "validate_structured",
]
