"""Nutrition Assistant: tests for the credential -> LLM -> validate -> retry flow.

Tests cover:
    - Missing credential returns NO_CREDENTIAL without calling the LLM
    - Valid replies decode into typed payloads
    - Malformed replies are retried and the attempt counter reset on success
    - Out-of-range replies exhaust with the last rejection
    - Upstream 401 stops after one attempt
    - Food photos are forwarded to the LLM client
    - Caller input validated by request schemas before any call
    - Configured health context limit and food input presence enforced
    - from_settings wires the configured retry policy
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from macrolens.config import Settings
from macrolens.core.domain_types import ErrorKind, ErrorSeverity, RejectionKind
from macrolens.core.error_classifier import ErrorClassifier
from macrolens.core.errors import UpstreamStatusError
from macrolens.core.response_validator import ResponseValidator
from macrolens.infrastructure.anthropic_client import AnthropicLLMClient
from macrolens.infrastructure.credentials import StaticCredentialStore
from macrolens.schemas.nutrition import FoodResponse, GoalResponse
from macrolens.services.nutrition_assistant import (
    ANALYZE_FOOD,
    GENERATE_GOALS,
    NutritionAssistant,
)
from macrolens.services.retry_executor import (
    RetryExecutor,
    RetryFailed,
    RetrySucceeded,
)

from tests.services.fake_llm import FakeLLMClient, food_reply, goal_reply


FIXED_NOW = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


async def _no_sleep(delay):
    return None


def _assistant(llm, api_key="sk-ant-test"):
    executor = RetryExecutor(ErrorClassifier(), sleep=_no_sleep)
    return NutritionAssistant(
        llm,
        StaticCredentialStore(api_key),
        ResponseValidator(),
        executor,
        clock=lambda: FIXED_NOW,
    )


# ─── Credential ──────────────────────────────────────────────────

async def test_missing_key_skips_llm_call():
    llm = FakeLLMClient([goal_reply()])
    assistant = _assistant(llm, api_key=None)

    outcome = await assistant.generate_goals("Active 30yo, wants to build muscle")

    assert isinstance(outcome, RetryFailed)
    assert outcome.attempts == 0
    assert outcome.error.kind is ErrorKind.NO_CREDENTIAL
    assert outcome.error.severity is ErrorSeverity.HIGH
    assert llm.calls == []


async def test_blank_key_counts_as_missing():
    llm = FakeLLMClient([])
    outcome = await _assistant(llm, api_key="  ").analyze_food("apple")
    assert outcome.error.kind is ErrorKind.NO_CREDENTIAL


# ─── Goals ───────────────────────────────────────────────────────

async def test_generate_goals_decodes_payload():
    llm = FakeLLMClient([goal_reply(k_cals=2200)])
    assistant = _assistant(llm)

    outcome = await assistant.generate_goals("Runner, 70kg")

    assert isinstance(outcome, RetrySucceeded)
    assert isinstance(outcome.value, GoalResponse)
    assert outcome.value.k_cals == 2200
    assert "Runner, 70kg" in llm.calls[0]["prompt"]
    assert '"2024-01-01"' in llm.calls[0]["prompt"]


async def test_malformed_reply_retried_then_succeeds():
    llm = FakeLLMClient([
        "Sure! Here are your goals.",
        goal_reply(),
    ])
    assistant = _assistant(llm)

    outcome = await assistant.generate_goals("Runner")

    assert isinstance(outcome, RetrySucceeded)
    assert outcome.attempts == 2
    assert await assistant.executor.attempts(GENERATE_GOALS) == 0


async def test_out_of_range_exhausts_with_last_rejection():
    llm = FakeLLMClient([
        "not json",
        goal_reply(protein_g=900),
        goal_reply(k_cals=9000),
    ])
    assistant = _assistant(llm)

    outcome = await assistant.generate_goals("Runner")

    assert isinstance(outcome, RetryFailed)
    assert outcome.exhausted is True
    assert outcome.attempts == 3
    assert outcome.error.kind is ErrorKind.MALFORMED_OUTPUT
    assert outcome.error.detail == RejectionKind.OUT_OF_RANGE.value
    assert "'k_cals'" in outcome.error.message
    assert outcome.error.context == "Goal generation"


async def test_unauthorized_stops_after_one_attempt():
    llm = FakeLLMClient([UpstreamStatusError(401), goal_reply()])
    assistant = _assistant(llm)

    outcome = await assistant.generate_goals("Runner")

    assert isinstance(outcome, RetryFailed)
    assert outcome.attempts == 1
    assert outcome.error.kind is ErrorKind.UPSTREAM_ERROR
    assert len(llm.calls) == 1


async def test_modify_goals_includes_current_values():
    current = GoalResponse(
        date="2024-01-01", k_cals=2000, protein_g=120, carbs_g=220,
        fat_g=70, fiber_g=25,
    )
    llm = FakeLLMClient([goal_reply(k_cals=1800)])

    outcome = await _assistant(llm).modify_goals(current, "Cut 200 calories")

    assert outcome.value.k_cals == 1800
    prompt = llm.calls[0]["prompt"]
    assert "Calories: 2000" in prompt
    assert "Cut 200 calories" in prompt


# ─── Food ────────────────────────────────────────────────────────

async def test_analyze_food_forwards_photo():
    llm = FakeLLMClient([food_reply()])
    photo = b"\xff\xd8\xff\xe0fake-jpeg"

    outcome = await _assistant(llm).analyze_food("breakfast", image_jpeg=photo)

    assert isinstance(outcome.value, FoodResponse)
    assert outcome.value.food_name == "Banana"
    assert llm.calls[0]["image_jpeg"] == photo


async def test_analyze_food_zero_servings_is_low_severity():
    llm = FakeLLMClient([food_reply(servings=0)] * 3)
    assistant = _assistant(llm)

    outcome = await assistant.analyze_food("banana")

    assert isinstance(outcome, RetryFailed)
    assert outcome.error.severity is ErrorSeverity.LOW
    assert "'servings'" in outcome.error.message
    assert await assistant.executor.attempts(ANALYZE_FOOD) == 3


# ─── Input Validation ────────────────────────────────────────────

async def test_empty_health_context_rejected():
    with pytest.raises(ValidationError):
        await _assistant(FakeLLMClient([])).generate_goals("")


async def test_overlong_health_context_rejected():
    with pytest.raises(ValidationError):
        await _assistant(FakeLLMClient([])).generate_goals("x" * 1001)


async def test_configured_health_context_limit_enforced():
    llm = FakeLLMClient([goal_reply()])
    assistant = _assistant(llm)
    assistant.max_health_context_length = 10

    with pytest.raises(ValidationError):
        await assistant.generate_goals("x" * 500)
    assert llm.calls == []

    outcome = await assistant.generate_goals("x" * 10)
    assert isinstance(outcome, RetrySucceeded)


async def test_food_analysis_needs_description_or_photo():
    llm = FakeLLMClient([food_reply()])
    assistant = _assistant(llm)

    with pytest.raises(ValidationError):
        await assistant.analyze_food("   ")
    assert llm.calls == []

    outcome = await assistant.analyze_food(image_jpeg=b"\xff\xd8photo")
    assert isinstance(outcome, RetrySucceeded)


# ─── Wiring ──────────────────────────────────────────────────────

def test_from_settings_uses_retry_policy():
    settings = Settings(
        _env_file=None,
        anthropic_api_key="sk-ant-test",
        retry_max_attempts=5,
        retry_base_delay_ms=250,
    )
    assistant = NutritionAssistant.from_settings(settings)

    assert assistant.executor.max_attempts == 5
    assert assistant.executor.base_delay_s == 0.25
    assert isinstance(assistant.llm, AnthropicLLMClient)
    assert assistant.credentials.get_api_key() == "sk-ant-test"


async def test_from_settings_uses_health_context_limit():
    settings = Settings(
        _env_file=None,
        anthropic_api_key="sk-ant-test",
        max_health_context_length=10,
    )
    assistant = NutritionAssistant.from_settings(settings)

    assert assistant.max_health_context_length == 10
    with pytest.raises(ValidationError):
        await assistant.generate_goals("x" * 500)
