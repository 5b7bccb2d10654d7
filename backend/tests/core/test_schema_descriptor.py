"""Schema Descriptors: tests for field order, kinds, and bounds of both shapes.

Tests cover:
    - Goal and Food key order matches the order the LLM is instructed to produce
    - Every numeric field carries bounds with 0 as minimum
    - servings lower bound is exclusive, every other lower bound inclusive
    - NumericBounds.contains is inclusive at both ends by default
    - Descriptors are immutable
"""

from dataclasses import FrozenInstanceError

import pytest

from macrolens.core.domain_types import ValueKind
from macrolens.core.schema_descriptor import (
    FOOD_SCHEMA,
    GOAL_SCHEMA,
    NumericBounds,
)
from macrolens.schemas.nutrition import FoodResponse, GoalResponse


def test_goal_key_order():
    assert GOAL_SCHEMA.keys == (
        "date", "k_cals", "protein_g", "carbs_g", "fat_g", "fiber_g",
    )


def test_food_key_order():
    assert FOOD_SCHEMA.keys == (
        "food_name", "servings", "timestamp",
        "k_cals", "protein_g", "carbs_g", "fat_g", "fiber_g",
    )


def test_payload_models():
    assert GOAL_SCHEMA.payload_model is GoalResponse
    assert FOOD_SCHEMA.payload_model is FoodResponse


def test_keys_match_payload_model_fields():
    for schema in (GOAL_SCHEMA, FOOD_SCHEMA):
        assert set(schema.keys) == set(schema.payload_model.model_fields)


def test_numeric_fields_have_zero_minimum():
    for schema in (GOAL_SCHEMA, FOOD_SCHEMA):
        for spec in schema.fields:
            if spec.kind is ValueKind.NUMBER:
                assert spec.bounds is not None
                assert spec.bounds.minimum == 0
            else:
                assert spec.bounds is None


def test_only_servings_has_exclusive_minimum():
    exclusive = [
        spec.key
        for spec in FOOD_SCHEMA.fields + GOAL_SCHEMA.fields
        if spec.bounds is not None and spec.bounds.min_exclusive
    ]
    assert exclusive == ["servings"]


def test_bounds_inclusive_at_both_ends():
    bounds = NumericBounds(0, 10)
    assert bounds.contains(0)
    assert bounds.contains(10)
    assert not bounds.contains(-0.001)
    assert not bounds.contains(10.001)


def test_exclusive_minimum_rejects_bound():
    bounds = NumericBounds(0, 50, min_exclusive=True)
    assert not bounds.contains(0)
    assert bounds.contains(0.1)
    assert bounds.contains(50)


def test_descriptor_is_frozen():
    with pytest.raises(FrozenInstanceError):
        GOAL_SCHEMA.shape_name = "Other"
