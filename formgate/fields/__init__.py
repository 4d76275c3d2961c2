"""Form field type handling and value normalization."""

from .normalize import FieldValueTransformer, normalize_field_value
from .types import SKIP_FIELD_TYPES, FieldType, RawKind, classify_raw_value, field_type_tag, is_data_field

__all__ = [
    "SKIP_FIELD_TYPES",
    "FieldType",
    "FieldValueTransformer",
    "RawKind",
    "classify_raw_value",
    "field_type_tag",
    "is_data_field",
    "normalize_field_value",
]
