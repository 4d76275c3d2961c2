"""Field value normalization for submission data.

Converts heterogeneous raw field values into a stable, JSON-safe external
representation. Each field type tag maps to one rule in a dispatch table;
unknown tags fall through to the default rule. Normalization is a pure
function of ``(type_tag, raw_value)``.

Rules:
    Number      -> float when numeric-looking, else None
    Dropdown    -> mapping "value", first element of a sequence, else unchanged
    Radio       -> same as Dropdown
    Checkboxes  -> element-wise "value" extraction, order preserved
    Date        -> ISO-8601 timestamp (dates at midnight UTC), else unchanged
    Name        -> {firstName, lastName, fullName}
    Phone       -> mapping "phoneNumber", falling back to "number"
    Email       -> mapping "email", or the first element of a sequence
    FileUpload  -> [{filename, url}] per attached asset, None when empty
    default     -> strings unchanged, anything else JSON-encoded
"""

import json
import math
import re
from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Optional

import structlog

from .types import FieldType, RawKind, classify_raw_value

logger = structlog.get_logger()

Rule = Callable[[RawKind, Any], Any]

# PHP-style numeric strings: optional sign, digits with optional fraction, optional exponent
_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


def _first_present(mapping: Mapping, *keys: str) -> Any:
    for key in keys:
        value = mapping.get(key)
        if value is not None:
            return value
    return None


def _first_element(sequence: Any) -> Any:
    for item in sequence:
        return item
    return None


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return list(value)
    if hasattr(value, "model_dump"):
        return value.model_dump()
    return str(value)


def to_json_string(value: Any) -> str:
    return json.dumps(value, default=_json_default, ensure_ascii=False)


def normalize_number(kind: RawKind, value: Any) -> Optional[float]:
    if kind is not RawKind.SCALAR or isinstance(value, bool):
        return None
    if isinstance(value, str):
        if not _NUMERIC_RE.match(value):
            return None
        number = float(value)
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
    return number if math.isfinite(number) else None


def normalize_single_choice(kind: RawKind, value: Any) -> Any:
    if kind is RawKind.MAPPING:
        return value.get("value")
    if kind is RawKind.SEQUENCE:
        return _first_element(value)
    return value


def normalize_multi_choice(kind: RawKind, value: Any) -> Any:
    if kind is RawKind.MAPPING:
        items = list(value.values())
    elif kind is RawKind.SEQUENCE:
        items = list(value)
    else:
        return value

    result = []
    for item in items:
        if isinstance(item, Mapping) and item.get("value") is not None:
            result.append(item["value"])
        else:
            result.append(item)
    return result


def normalize_date(kind: RawKind, value: Any) -> Any:
    if kind is not RawKind.TEMPORAL:
        return value
    # Date-only values become midnight UTC so every date renders as a full timestamp
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time(0), tzinfo=timezone.utc)
    return value.isoformat()


def normalize_name(kind: RawKind, value: Any) -> Any:
    if kind is not RawKind.MAPPING:
        return value

    first_name = value.get("firstName")
    last_name = value.get("lastName")
    return {
        "firstName": first_name,
        "lastName": last_name,
        "fullName": f"{first_name or ''} {last_name or ''}".strip(),
    }


def normalize_phone(kind: RawKind, value: Any) -> Any:
    if kind is RawKind.MAPPING:
        return _first_present(value, "phoneNumber", "number")
    return value


def normalize_email(kind: RawKind, value: Any) -> Any:
    if kind is RawKind.MAPPING:
        return value.get("email")
    if kind is RawKind.SEQUENCE:
        return _first_element(value)
    return value


def _asset_entry(asset: Any) -> dict[str, Any]:
    if isinstance(asset, Mapping):
        return {"filename": asset.get("filename"), "url": asset.get("url")}

    url = getattr(asset, "url", None)
    if url is None and callable(getattr(asset, "get_url", None)):
        url = asset.get_url()
    return {"filename": getattr(asset, "filename", None), "url": url}


def normalize_file_upload(kind: RawKind, value: Any) -> Optional[list[dict[str, Any]]]:
    if kind is RawKind.SEQUENCE:
        assets = list(value)
    elif kind in (RawKind.MAPPING, RawKind.OBJECT):
        assets = [value]
    else:
        return None

    if not assets:
        return None
    return [_asset_entry(asset) for asset in assets]


def normalize_default(kind: RawKind, value: Any) -> Any:
    if isinstance(value, str):
        return value
    return to_json_string(value)


DEFAULT_RULES: dict[str, Rule] = {
    FieldType.NUMBER.value: normalize_number,
    FieldType.DROPDOWN.value: normalize_single_choice,
    FieldType.RADIO.value: normalize_single_choice,
    FieldType.CHECKBOXES.value: normalize_multi_choice,
    FieldType.DATE.value: normalize_date,
    FieldType.NAME.value: normalize_name,
    FieldType.PHONE.value: normalize_phone,
    FieldType.EMAIL.value: normalize_email,
    FieldType.FILE_UPLOAD.value: normalize_file_upload,
}


class FieldValueTransformer:
    """Table-driven field value normalizer.

    The table starts from ``DEFAULT_RULES`` and can be extended per instance
    with :meth:`register`. Unknown type tags use the default rule.
    """

    def __init__(self, rules: Optional[dict[str, Rule]] = None, default: Rule = normalize_default):
        self._rules: dict[str, Rule] = dict(DEFAULT_RULES if rules is None else rules)
        self._default = default

    def register(self, type_tag: str, rule: Rule) -> None:
        self._rules[str(type_tag)] = rule

    def set_default(self, rule: Rule) -> None:
        self._default = rule

    def rule_for(self, type_tag: str) -> Rule:
        return self._rules.get(type_tag, self._default)

    def normalize(self, type_tag: str, raw_value: Any) -> Any:
        """Normalize one raw field value.

        Args:
            type_tag: Field type tag, e.g. "Number" or "Checkboxes"
            raw_value: Value as stored for the submission

        Returns:
            JSON-safe normalized value, or None for empty input
        """
        kind = classify_raw_value(raw_value)
        if kind is RawKind.NULL:
            return None
        return self.rule_for(str(type_tag))(kind, raw_value)


_default_transformer = FieldValueTransformer()


def normalize_field_value(type_tag: str, raw_value: Any) -> Any:
    """Normalize a raw value with the built-in rule table."""
    return _default_transformer.normalize(type_tag, raw_value)
