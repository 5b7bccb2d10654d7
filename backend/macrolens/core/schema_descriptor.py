"""Schema Descriptors: ordered field definitions for the two supported payload shapes.

Invariants:
    - Field order matches the exact key order the LLM is instructed to produce
    - GOAL_SCHEMA and FOOD_SCHEMA are immutable module-level values
    - Every NUMBER field of the current shapes carries bounds; 0 is the implicit minimum
    - servings uses an exclusive lower bound (0 servings is invalid)

Design Decisions:
    - Data-driven descriptors: the structural matcher is compiled from these,
      so adding or reordering a field is a data change, not a new pattern
"""

from dataclasses import dataclass

from pydantic import BaseModel

from macrolens.core.domain_types import ValueKind
from macrolens.schemas.nutrition import FoodResponse, GoalResponse


@dataclass(frozen=True)
class NumericBounds:
    """Closed interval [minimum, maximum]; lower end open when min_exclusive."""
    minimum: float
    maximum: float
    min_exclusive: bool = False

    def contains(self, value: float) -> bool:
        if self.min_exclusive:
            above_min = value > self.minimum
        else:
            above_min = value >= self.minimum
        return above_min and value <= self.maximum


@dataclass(frozen=True)
class FieldSpec:
    key: str
    kind: ValueKind
    bounds: NumericBounds | None = None


@dataclass(frozen=True)
class SchemaDescriptor:
    """One payload shape: name, ordered fields, and the model it decodes into."""
    shape_name: str
    fields: tuple[FieldSpec, ...]
    payload_model: type[BaseModel]

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(f.key for f in self.fields)


# ─── Limits ──────────────────────────────────────────────────────

MAX_CALORIES: float = 5000
MAX_PROTEIN_G: float = 500
MAX_CARBS_G: float = 1000
MAX_FAT_G: float = 500
MAX_FIBER_G: float = 200
MAX_SERVINGS: float = 50


def _number(key: str, maximum: float, *, min_exclusive: bool = False) -> FieldSpec:
    return FieldSpec(
        key, ValueKind.NUMBER,
        NumericBounds(0, maximum, min_exclusive=min_exclusive),
    )


_MACRO_FIELDS: tuple[FieldSpec, ...] = (
    _number("k_cals", MAX_CALORIES),
    _number("protein_g", MAX_PROTEIN_G),
    _number("carbs_g", MAX_CARBS_G),
    _number("fat_g", MAX_FAT_G),
    _number("fiber_g", MAX_FIBER_G),
)


GOAL_SCHEMA = SchemaDescriptor(
    shape_name="Goal",
    fields=(FieldSpec("date", ValueKind.STRING),) + _MACRO_FIELDS,
    payload_model=GoalResponse,
)

FOOD_SCHEMA = SchemaDescriptor(
    shape_name="Food",
    fields=(
        FieldSpec("food_name", ValueKind.STRING),
        _number("servings", MAX_SERVINGS, min_exclusive=True),
        FieldSpec("timestamp", ValueKind.STRING),
    ) + _MACRO_FIELDS,
    payload_model=FoodResponse,
)
