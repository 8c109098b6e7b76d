from enum import Enum

from pydantic import BaseModel


class CoercionRule(str, Enum):
    """How a positional dump value is turned into a typed document value."""

    INTEGER = "integer"
    STRUCTURED = "structured"
    TIMESTAMP = "timestamp"
    SENTINEL_NULLABLE = "sentinel_nullable"
    TEXT = "text"


class FieldDescriptor(BaseModel):
    """A DTO for one column of the dumped table."""

    name: str
    rule: CoercionRule = CoercionRule.TEXT
