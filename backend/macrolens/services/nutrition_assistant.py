"""Nutrition Assistant: credential check, LLM call, validation, and retry in one flow.

Invariants:
    - Missing credential -> RetryFailed(NO_CREDENTIAL) with 0 attempts, no LLM call
    - Each operation runs "call LLM -> validate" under a stable operation key
    - Success value is the typed payload (GoalResponse / FoodResponse)
    - Caller input is validated by request schemas before any prompt is built;
      invalid input raises pydantic.ValidationError (the only exception the
      facade raises), everything after that is reported as a RetryOutcome
    - Health context length is bounded by the configured
      max_health_context_length

Design Decisions:
    - Collaborators injected (no singletons); from_settings() wires the defaults
    - Rejected outcomes are returned to the executor as values, which classifies them
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from macrolens.config import Settings
from macrolens.core.error_classifier import ErrorClassifier
from macrolens.core.errors import MissingCredentialError
from macrolens.core.response_validator import Decoded, ResponseValidator
from macrolens.core.schema_descriptor import FOOD_SCHEMA, GOAL_SCHEMA, SchemaDescriptor
from macrolens.infrastructure.anthropic_client import AnthropicLLMClient
from macrolens.infrastructure.credentials import CredentialStore, SettingsCredentialStore
from macrolens.schemas.nutrition import (
    MAX_HEALTH_CONTEXT_LENGTH,
    FoodAnalysisRequest,
    GoalModificationRequest,
    GoalRequest,
    GoalResponse,
)
from macrolens.services.nutrition_prompts import (
    build_food_prompt,
    build_goal_modification_prompt,
    build_goal_prompt,
)
from macrolens.services.retry_executor import (
    CancellationToken,
    RetryExecutor,
    RetryFailed,
    RetryOutcome,
)

logger = logging.getLogger(__name__)

GENERATE_GOALS = "generate_goals"
MODIFY_GOALS = "modify_goals"
ANALYZE_FOOD = "analyze_food"


class LLMClient(Protocol):
    async def complete(self, prompt: str, image_jpeg: bytes | None = None) -> str: ...


def _local_now() -> datetime:
    return datetime.now().astimezone()


class NutritionAssistant:
    """Facade used by the app layer for every AI-backed nutrition feature.

    Each operation returns a RetryOutcome. Invalid caller input raises
    pydantic.ValidationError before the credential check or any LLM call.
    """

    def __init__(
        self,
        llm: LLMClient,
        credentials: CredentialStore,
        validator: ResponseValidator,
        executor: RetryExecutor,
        clock: Callable[[], datetime] = _local_now,
        max_health_context_length: int = MAX_HEALTH_CONTEXT_LENGTH,
    ):
        self.llm = llm
        self.credentials = credentials
        self.validator = validator
        self.executor = executor
        self._clock = clock
        self.max_health_context_length = max_health_context_length

    @classmethod
    def from_settings(cls, settings: Settings) -> "NutritionAssistant":
        credentials = SettingsCredentialStore(settings)
        executor = RetryExecutor(
            ErrorClassifier(),
            max_attempts=settings.retry_max_attempts,
            base_delay_s=settings.retry_base_delay_s,
        )
        return cls(
            AnthropicLLMClient.from_settings(settings, credentials),
            credentials,
            ResponseValidator(),
            executor,
            max_health_context_length=settings.max_health_context_length,
        )

    async def generate_goals(
        self, health_context: str, *,
        cancel_token: CancellationToken | None = None,
    ) -> RetryOutcome:
        request = GoalRequest.model_validate(
            {"health_context": health_context},
            context={"max_health_context_length": self.max_health_context_length},
        )
        prompt = build_goal_prompt(request.health_context, self._clock().date())
        return await self._run(
            GENERATE_GOALS, "Goal generation", prompt, GOAL_SCHEMA,
            cancel_token=cancel_token,
        )

    async def modify_goals(
        self, current_goal: GoalResponse, user_request: str, *,
        cancel_token: CancellationToken | None = None,
    ) -> RetryOutcome:
        request = GoalModificationRequest(
            current_goal=current_goal, user_request=user_request,
        )
        prompt = build_goal_modification_prompt(
            request.current_goal, request.user_request, self._clock().date(),
        )
        return await self._run(
            MODIFY_GOALS, "Goal update", prompt, GOAL_SCHEMA,
            cancel_token=cancel_token,
        )

    async def analyze_food(
        self, description: str = "", image_jpeg: bytes | None = None, *,
        cancel_token: CancellationToken | None = None,
    ) -> RetryOutcome:
        request = FoodAnalysisRequest(description=description, image_jpeg=image_jpeg)
        prompt = build_food_prompt(request.description, self._clock())
        return await self._run(
            ANALYZE_FOOD, "Food analysis", prompt, FOOD_SCHEMA,
            image_jpeg=request.image_jpeg, cancel_token=cancel_token,
        )

    async def _run(
        self,
        operation_key: str,
        context: str,
        prompt: str,
        schema: SchemaDescriptor,
        *,
        image_jpeg: bytes | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> RetryOutcome:
        if self.credentials.get_api_key() is None:
            error = self.executor.classifier.classify(MissingCredentialError(), context)
            logger.warning(
                f"{context} skipped: no API key",
                extra={"operation_key": operation_key, "error_kind": error.kind.value},
            )
            return RetryFailed(error, attempts=0, exhausted=False)

        async def call_and_validate():
            raw_text = await self.llm.complete(prompt, image_jpeg)
            outcome = self.validator.validate(raw_text, schema)
            if isinstance(outcome, Decoded):
                return outcome.payload
            return outcome

        return await self.executor.run_with_retry(
            operation_key, call_and_validate,
            cancel_token=cancel_token, context=context,
        )
