"""Response Validator: proves a raw LLM reply conforms to a schema descriptor.

Invariants:
    - validate() never raises; every failure is a Rejected value
    - Stages run in order and short-circuit: cleanse, structure, decode, range
    - cleanse_response_text is idempotent
    - Range check reports the FIRST violating field in schema order
    - Ranges are inclusive on both ends unless the bounds say min_exclusive

Design Decisions:
    - Structural pattern compiled from the descriptor and cached per schema
    - Structural check runs before json.loads so near-misses (prose, truncation,
      renamed keys) get STRUCTURAL_MISMATCH instead of a generic decode failure
    - Validation never retries; retry is the caller's decision (RetryExecutor)
    - Integers decode as floats: oversized literals become inf and fail the range
      check instead of the int conversion limit
"""

import json
import re
from dataclasses import dataclass
from functools import lru_cache

from pydantic import BaseModel, ValidationError

from macrolens.core.domain_types import RejectionKind, ValueKind
from macrolens.core.schema_descriptor import (
    FOOD_SCHEMA,
    GOAL_SCHEMA,
    SchemaDescriptor,
)


# ─── Outcomes ────────────────────────────────────────────────────

@dataclass(frozen=True)
class Decoded:
    payload: BaseModel

    @property
    def is_decoded(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    kind: RejectionKind
    detail: str

    @property
    def is_decoded(self) -> bool:
        return False


ValidationOutcome = Decoded | Rejected


# ─── Cleansing ───────────────────────────────────────────────────

_FENCE_OPEN = re.compile(r"\A```[A-Za-z0-9_-]*")
_FENCE_CLOSE = re.compile(r"```\Z")


def cleanse_response_text(raw_text: str) -> str:
    """Strip surrounding markdown code fences and whitespace.

    Repeats until nothing changes, so cleansing cleansed text is a no-op.
    """
    cleaned = raw_text.strip()
    while True:
        stripped = _FENCE_OPEN.sub("", cleaned, count=1)
        stripped = _FENCE_CLOSE.sub("", stripped, count=1).strip()
        if stripped == cleaned:
            return cleaned
        cleaned = stripped


# ─── Structural Matching ─────────────────────────────────────────

_LITERAL_PATTERNS: dict[ValueKind, str] = {
    ValueKind.STRING: r'"(?:[^"\\]|\\.)*"',
    ValueKind.NUMBER: r"-?\d+(?:\.\d+)?",
}


@lru_cache(maxsize=None)
def _structure_pattern(schema: SchemaDescriptor) -> re.Pattern[str]:
    members = [
        rf'"{re.escape(f.key)}"\s*:\s*{_LITERAL_PATTERNS[f.kind]}'
        for f in schema.fields
    ]
    return re.compile(r"\{\s*" + r"\s*,\s*".join(members) + r"\s*\}")


def matches_structure(text: str, schema: SchemaDescriptor) -> bool:
    """True when text is one object with exactly the schema keys, in order."""
    return _structure_pattern(schema).fullmatch(text) is not None


# ─── Range Checking ──────────────────────────────────────────────

def first_out_of_range_field(
    payload: BaseModel, schema: SchemaDescriptor,
) -> str | None:
    """Key of the first field that is out of bounds or blank, else None."""
    for spec in schema.fields:
        value = getattr(payload, spec.key)
        if spec.kind is ValueKind.STRING:
            if not value.strip():
                return spec.key
            continue
        if spec.bounds is not None and not spec.bounds.contains(value):
            return spec.key
    return None


# ─── Validator ───────────────────────────────────────────────────

class ResponseValidator:
    """Stateless validator; safe to share across concurrent tasks."""

    def validate(self, raw_text: str, schema: SchemaDescriptor) -> ValidationOutcome:
        cleaned = cleanse_response_text(raw_text)

        if not matches_structure(cleaned, schema):
            return Rejected(RejectionKind.STRUCTURAL_MISMATCH, schema.shape_name)

        try:
            payload = schema.payload_model.model_validate(
                json.loads(cleaned, parse_int=float),
            )
        except (ValueError, ValidationError) as e:
            return Rejected(RejectionKind.DECODE_FAILURE, _describe_decode_error(e))

        violating = first_out_of_range_field(payload, schema)
        if violating is not None:
            return Rejected(RejectionKind.OUT_OF_RANGE, violating)

        return Decoded(payload)

    def validate_goal(self, raw_text: str) -> ValidationOutcome:
        return self.validate(raw_text, GOAL_SCHEMA)

    def validate_food(self, raw_text: str) -> ValidationOutcome:
        return self.validate(raw_text, FOOD_SCHEMA)


def _describe_decode_error(error: Exception) -> str:
    if isinstance(error, ValidationError):
        first = error.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        return f"{location}: {first['msg']}"
    return str(error)
