"""Nutrition Prompts: tests that prompts request keys in schema order.

Tests cover:
    - json_template lists keys in descriptor order
    - Goal prompt embeds today's date and the health context
    - Food prompt embeds an ISO-8601 timestamp and optional description
"""

from datetime import date, datetime, timezone

from macrolens.core.schema_descriptor import FOOD_SCHEMA, GOAL_SCHEMA
from macrolens.schemas.nutrition import GoalResponse
from macrolens.services.nutrition_prompts import (
    build_food_prompt,
    build_goal_modification_prompt,
    build_goal_prompt,
    json_template,
)


def _key_positions(text, keys):
    return [text.index(f'"{key}"') for key in keys]


def test_json_template_preserves_schema_order():
    template = json_template(GOAL_SCHEMA, {k: "0" for k in GOAL_SCHEMA.keys})
    positions = _key_positions(template, GOAL_SCHEMA.keys)
    assert positions == sorted(positions)
    assert template.startswith("{") and template.endswith("}")


def test_goal_prompt_contents():
    prompt = build_goal_prompt("Vegetarian cyclist", date(2024, 3, 9))
    assert '"date": "2024-03-09"' in prompt
    assert "Health Context: Vegetarian cyclist" in prompt
    assert "ONLY a JSON object" in prompt
    positions = _key_positions(prompt, GOAL_SCHEMA.keys)
    assert positions == sorted(positions)


def test_goal_modification_prompt_lists_current_goals():
    current = GoalResponse(
        date="2024-03-09", k_cals=2100.5, protein_g=140, carbs_g=230,
        fat_g=75, fiber_g=28,
    )
    prompt = build_goal_modification_prompt(current, "More protein", date(2024, 3, 9))
    assert "Calories: 2100.5" in prompt
    assert "Protein: 140g" in prompt
    assert "User request: More protein" in prompt


def test_food_prompt_contents():
    now = datetime(2024, 3, 9, 12, 15, 30, tzinfo=timezone.utc)
    prompt = build_food_prompt("half portion", now)
    assert '"timestamp": "2024-03-09T12:15:30+00:00"' in prompt
    assert "Additional context: half portion" in prompt
    positions = _key_positions(prompt, FOOD_SCHEMA.keys)
    assert positions == sorted(positions)


def test_food_prompt_without_description():
    now = datetime(2024, 3, 9, 12, 0, tzinfo=timezone.utc)
    assert "Additional context" not in build_food_prompt("  ", now)
