"""Nutrition Prompts: instructions that ask the LLM for schema-ordered JSON.

Invariants:
    - The JSON template in every prompt lists keys in the schema descriptor's order
    - Goal prompts embed today's date as YYYY-MM-DD; food prompts an ISO-8601 timestamp
    - Prompt builders are pure: the clock is passed in
"""

from datetime import date, datetime

from macrolens.core.schema_descriptor import FOOD_SCHEMA, GOAL_SCHEMA, SchemaDescriptor
from macrolens.schemas.nutrition import GoalResponse

_JSON_ONLY = "Return ONLY a JSON object in this exact format, no other text or markdown:"


def json_template(schema: SchemaDescriptor, placeholders: dict[str, str]) -> str:
    """Render the expected object with one placeholder per key, in schema order."""
    lines = [
        f'    "{key}": {placeholders[key]}'
        for key in schema.keys
    ]
    return "{\n" + ",\n".join(lines) + "\n}"


def _goal_template(today: date) -> str:
    return json_template(GOAL_SCHEMA, {
        "date": f'"{today.isoformat()}"',
        "k_cals": "[number]",
        "protein_g": "[number]",
        "carbs_g": "[number]",
        "fat_g": "[number]",
        "fiber_g": "[number]",
    })


def build_goal_prompt(health_context: str, today: date) -> str:
    return (
        "Based on the following health context, generate personalized macro "
        "goals for today.\n"
        f"{_JSON_ONLY}\n\n"
        f"{_goal_template(today)}\n\n"
        f"Health Context: {health_context}\n\n"
        "Consider typical nutritional needs for their goals."
    )


def build_goal_modification_prompt(
    current_goal: GoalResponse, user_request: str, today: date,
) -> str:
    return (
        "User wants to modify their current macro goals. Current goals:\n"
        f"- Calories: {current_goal.k_cals:g}\n"
        f"- Protein: {current_goal.protein_g:g}g\n"
        f"- Carbs: {current_goal.carbs_g:g}g\n"
        f"- Fat: {current_goal.fat_g:g}g\n"
        f"- Fiber: {current_goal.fiber_g:g}g\n\n"
        f"User request: {user_request}\n\n"
        f"{_JSON_ONLY}\n\n"
        f"{_goal_template(today)}"
    )


def build_food_prompt(description: str, now: datetime) -> str:
    context = f" Additional context: {description}" if description.strip() else ""
    template = json_template(FOOD_SCHEMA, {
        "food_name": '"[descriptive food name]"',
        "servings": "[estimated servings as decimal]",
        "timestamp": f'"{now.isoformat(timespec="seconds")}"',
        "k_cals": "[estimated calories]",
        "protein_g": "[grams of protein]",
        "carbs_g": "[grams of carbohydrates]",
        "fat_g": "[grams of fat]",
        "fiber_g": "[grams of fiber]",
    })
    return (
        f"Analyze this food and provide macro information.{context}\n\n"
        f"{_JSON_ONLY}\n\n"
        f"{template}\n\n"
        "Be conservative with estimates."
    )
