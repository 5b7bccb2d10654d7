"""Nutrition Schemas: typed payloads decoded from LLM replies, plus request shapes.

Invariants:
    - GoalResponse / FoodResponse field names equal the JSON keys the LLM emits
    - Payloads are frozen and reject unknown keys
    - Numeric bounds are NOT enforced here; the validator range-checks against
      the schema descriptor so the first violating field can be reported

Design Decisions:
    - Pydantic over hand-written decoding: type errors surface as one
      ValidationError the validator turns into a DECODE_FAILURE rejection
"""

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)


class GoalResponse(BaseModel):
    """Daily macro goals returned by the LLM."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    date: str
    k_cals: float
    protein_g: float
    carbs_g: float
    fat_g: float
    fiber_g: float


class FoodResponse(BaseModel):
    """Macro estimate for one logged food item."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    food_name: str
    servings: float
    timestamp: str
    k_cals: float
    protein_g: float
    carbs_g: float
    fat_g: float
    fiber_g: float


# ─── Requests ────────────────────────────────────────────────────

# Mirrors the on-device health context character limit.
MAX_HEALTH_CONTEXT_LENGTH = 1000


class GoalRequest(BaseModel):
    """Input for generating goals from a free-text health context.

    The length limit defaults to MAX_HEALTH_CONTEXT_LENGTH and can be
    overridden per call through the validation context key
    "max_health_context_length".
    """
    health_context: str = Field(..., min_length=1)

    @field_validator("health_context")
    @classmethod
    def within_length_limit(cls, v: str, info: ValidationInfo) -> str:
        limit = (info.context or {}).get(
            "max_health_context_length", MAX_HEALTH_CONTEXT_LENGTH,
        )
        if len(v) > limit:
            raise ValueError(f"health context exceeds {limit} characters")
        return v


class GoalModificationRequest(BaseModel):
    """Input for adjusting the user's current goals."""
    current_goal: GoalResponse
    user_request: str = Field(..., min_length=1, max_length=500)


class FoodAnalysisRequest(BaseModel):
    """Input for estimating macros of a food description and/or photo."""
    description: str = Field(default="", max_length=500)
    image_jpeg: bytes | None = None

    @model_validator(mode="after")
    def has_food_input(self) -> "FoodAnalysisRequest":
        if not self.description.strip() and not self.image_jpeg:
            raise ValueError("a food description or photo is required")
        return self
