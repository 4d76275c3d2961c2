"""Field type tags and raw value classification.

Type tags are the short class names of the host platform's field types
(``Number``, ``Dropdown``, ``FileUpload`` ...). Tags outside ``FieldType`` are
still valid; the normalizer routes them to its default rule.

Raw values arrive untyped from the store. ``classify_raw_value`` sorts each
one into a closed ``RawKind`` once, so normalization rules branch on the kind
instead of probing the value with ad-hoc type checks.
"""

from collections.abc import Mapping
from datetime import date, datetime, time
from enum import Enum
from typing import Any


class FieldType(str, Enum):
    """Known field type tags."""

    NUMBER = "Number"
    DROPDOWN = "Dropdown"
    RADIO = "Radio"
    CHECKBOXES = "Checkboxes"
    DATE = "Date"
    NAME = "Name"
    PHONE = "Phone"
    EMAIL = "Email"
    FILE_UPLOAD = "FileUpload"
    RATING = "Rating"
    SINGLE_LINE_TEXT = "SingleLineText"
    MULTI_LINE_TEXT = "MultiLineText"
    HIDDEN = "Hidden"
    AGREE = "Agree"
    # Layout-only types, never part of submission data
    HTML = "Html"
    HEADING = "Heading"
    SECTION = "Section"
    SUMMARY = "Summary"
    PARAGRAPH = "Paragraph"


SKIP_FIELD_TYPES = frozenset({
    FieldType.HTML.value,
    FieldType.HEADING.value,
    FieldType.SECTION.value,
    FieldType.SUMMARY.value,
    FieldType.PARAGRAPH.value,
})


def is_data_field(type_tag: str) -> bool:
    """Return False for layout-only field types that carry no submission data."""
    return type_tag not in SKIP_FIELD_TYPES


def field_type_tag(class_path: str) -> str:
    """Reduce a fully-qualified field class name to its type tag.

    >>> field_type_tag("verbb\\\\formie\\\\fields\\\\FileUpload")
    'FileUpload'
    """
    return class_path.replace("\\", "/").replace(".", "/").rsplit("/", 1)[-1]


class RawKind(str, Enum):
    """Closed classification of untyped raw field values."""

    NULL = "null"
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    TEMPORAL = "temporal"
    OBJECT = "object"


def classify_raw_value(value: Any) -> RawKind:
    """Classify a raw value into exactly one RawKind.

    - None and the empty string are NULL
    - date, datetime and time instances are TEMPORAL
    - Mappings are MAPPING
    - Lists, tuples and sets are SEQUENCE
    - str, int, float, bool and Decimal-like numbers are SCALAR
    - Anything else (e.g. asset objects) is OBJECT
    """
    if value is None or value == "":
        return RawKind.NULL
    if isinstance(value, (datetime, date, time)):
        return RawKind.TEMPORAL
    if isinstance(value, Mapping):
        return RawKind.MAPPING
    if isinstance(value, (list, tuple, set, frozenset)):
        return RawKind.SEQUENCE
    if isinstance(value, (str, int, float, bool)):
        return RawKind.SCALAR
    if hasattr(value, "__float__") and not hasattr(value, "__dict__"):
        return RawKind.SCALAR
    return RawKind.OBJECT
