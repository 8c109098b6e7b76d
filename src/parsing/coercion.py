import json
import logging
import math
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Sequence

import dateparser

from src.dtos.field_descriptor import CoercionRule, FieldDescriptor
from src.parsing.value_normalizer import NULL_LITERAL, normalize_value

logger = logging.getLogger(__name__)

INVALID_DATE = "Invalid Date"

# Column names of the ACTIVITYLOG table with a non-text rule.
ACTIVITYLOG_RULES: dict[str, CoercionRule] = {
    "logId": CoercionRule.INTEGER,
    "adminId": CoercionRule.INTEGER,
    "userAgent": CoercionRule.STRUCTURED,
    "afterChange": CoercionRule.STRUCTURED,
    "beforeChange": CoercionRule.STRUCTURED,
    "createdAt": CoercionRule.TIMESTAMP,
    "updatedAt": CoercionRule.TIMESTAMP,
    "itemId": CoercionRule.SENTINEL_NULLABLE,
}

ACTIVITYLOG_FIELDS: list[FieldDescriptor] = [
    FieldDescriptor(name=name, rule=ACTIVITYLOG_RULES[name])
    for name in ("logId", "adminId", "afterChange", "createdAt", "updatedAt", "itemId")
]

_INTEGER_PREFIX = re.compile(r"^\s*([+-]?\d+)")

# Absolute dates with day, month and year; no relative phrases.
_DATEPARSER_SETTINGS = {
    "TIMEZONE": "UTC",
    "RETURN_AS_TIMEZONE_AWARE": True,
    "PARSERS": ["custom-formats", "absolute-time"],
    "REQUIRE_PARTS": ["day", "month", "year"],
}


class MalformedRowError(ValueError):
    """Raised in strict mode when a tuple's width differs from the schema."""


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite JSON constant {name}")


def _finite_float(text: str) -> float:
    number = float(text)
    if math.isinf(number):
        raise ValueError(f"JSON number {text} overflows a float")
    return number


def rule_for_name(name: str) -> CoercionRule:
    return ACTIVITYLOG_RULES.get(name, CoercionRule.TEXT)


def coerce_integer(value: str | None) -> int | None:
    """Parse a base-10 integer, keeping a leading integer prefix like ``parseInt``."""
    if not value:
        return None
    match = _INTEGER_PREFIX.match(value)
    if match is None:
        logger.debug("Non-integer value %r coerced to None", value)
        return None
    try:
        return int(match.group(1))
    except ValueError:
        logger.debug("Integer value %r too long to convert", value[:40])
        return None


def coerce_structured(value: str | None) -> Any:
    """Decode a JSON payload; empty becomes ``{}``, undecodable or non-finite stays text."""
    if not value:
        return {}
    try:
        return json.loads(value, parse_float=_finite_float, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        logger.debug("Structured value kept as text: %r", value[:80])
        return value


def coerce_timestamp(value: str | None) -> str | None:
    """Render a timestamp as ISO-8601 UTC with milliseconds.

    Naive timestamps are read as UTC. Unparseable input yields
    ``INVALID_DATE`` instead of raising.
    """
    if not value:
        return None

    parsed = parse_timestamp(value)
    if parsed is None:
        logger.debug("Unparseable timestamp %r", value)
        return INVALID_DATE

    try:
        return format_timestamp(parsed)
    except (OverflowError, ValueError):
        logger.debug("Timestamp %r out of range", value)
        return INVALID_DATE


def parse_timestamp(value: str) -> datetime | None:
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass

    try:
        return dateparser.parse(text, settings=_DATEPARSER_SETTINGS)
    except (ValueError, OverflowError, TypeError):
        return None


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    else:
        moment = moment.astimezone(timezone.utc)
    millis = moment.microsecond // 1000
    return f"{moment.strftime('%Y-%m-%dT%H:%M:%S')}.{millis:03d}Z"


def coerce_sentinel_nullable(value: str | None) -> str | None:
    """Map the text ``NULL`` to None.

    The normalizer already turns an unquoted ``NULL`` into None; this catches
    the quoted ``'NULL'`` that reaches here as text.
    """
    return None if value == NULL_LITERAL else value


def coerce_text(value: str | None) -> str | None:
    return value


COERCERS: dict[CoercionRule, Callable[[str | None], Any]] = {
    CoercionRule.INTEGER: coerce_integer,
    CoercionRule.STRUCTURED: coerce_structured,
    CoercionRule.TIMESTAMP: coerce_timestamp,
    CoercionRule.SENTINEL_NULLABLE: coerce_sentinel_nullable,
    CoercionRule.TEXT: coerce_text,
}


def load_schema(schema_path: str | Path) -> list[FieldDescriptor]:
    """Load an ordered column list from a JSON file.

    Each entry is either a column name, whose rule is inferred from the name,
    or an object ``{"name": ..., "rule": ...}``.

    Args:
        schema_path (str | Path): Path to the JSON schema file.

    Returns:
        list[FieldDescriptor]: The ordered field descriptors.
    """
    path = Path(schema_path)
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")

    entries = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(entries, list):
        raise ValueError(f"Schema file {path} must contain a JSON list")

    fields: list[FieldDescriptor] = []
    for entry in entries:
        if isinstance(entry, str):
            fields.append(FieldDescriptor(name=entry, rule=rule_for_name(entry)))
        else:
            fields.append(FieldDescriptor.model_validate(entry))
    return fields


class SchemaCoercionTable:
    """Turn normalized positional values into one typed record."""

    def __init__(self, fields: Sequence[FieldDescriptor], strict: bool = False):
        """
        Args:
            fields (Sequence[FieldDescriptor]): Ordered column descriptors.
            strict (bool, optional): Reject tuples whose width differs from
                the schema instead of padding/truncating. Defaults to False.
        """
        if not fields:
            raise ValueError("Schema must define at least one field")

        names = [field.name for field in fields]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate schema fields: {', '.join(duplicates)}")

        self.fields = list(fields)
        self.strict = strict
        self._coercers = [(field.name, COERCERS[field.rule]) for field in self.fields]

    @property
    def field_names(self) -> list[str]:
        return [field.name for field in self.fields]

    def build_record(self, raw_values: Sequence[str]) -> dict[str, Any]:
        """Normalize and coerce one raw tuple.

        Missing trailing values become None before coercion, extra values are
        dropped, so the record always has exactly the schema's keys.

        Raises:
            MalformedRowError: In strict mode, on a width mismatch.
        """
        if len(raw_values) != len(self.fields):
            if self.strict:
                raise MalformedRowError(
                    f"Expected {len(self.fields)} values, got {len(raw_values)}"
                )
            logger.debug(
                "Tuple has %d values for %d fields", len(raw_values), len(self.fields)
            )

        record: dict[str, Any] = {}
        for index, (name, coerce) in enumerate(self._coercers):
            raw = raw_values[index] if index < len(raw_values) else None
            record[name] = coerce(normalize_value(raw))
        return record
