from __future__ import annotations

import logging
import os
from datetime import date
from typing import Any, Optional, Protocol

from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from fitplan.config.constants import LLM_MODEL
from fitplan.db.plans import PlanApi
from fitplan.errors import PlanGenerationError
from fitplan.models import DietPlan, PlanKind, UserProfile, WorkoutPlan
from fitplan.plan.duration import compute_duration
from fitplan.plan.parsing import parse_diet_plan, parse_workout_plan
from fitplan.prompts.plan_prompts import build_diet_prompt, build_workout_prompt
from fitplan.tools.plan_cache import PlanCacheService
from fitplan.tools.rate_limit import GenerationRateLimiter

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


def _message_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts = [part.get("text", "") if isinstance(part, dict) else str(part) for part in content]
        content = "".join(parts)
    return str(content or "")


class LangChainTextGenerator:
    """Plan text from an OpenAI-compatible chat model. Calls are not time-limited."""

    def __init__(self, llm: Any = None, model: str = LLM_MODEL, temperature: float = 0.3) -> None:
        self._llm = llm
        self.model = model
        self.temperature = temperature

    def _get_llm(self) -> Any:
        if self._llm is None:
            if not os.getenv("OPENAI_API_KEY"):
                raise PlanGenerationError("OPENAI_API_KEY is not set")
            self._llm = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                max_retries=0,
                request_timeout=None,
                base_url=os.getenv("OPENAI_BASE_URL") or None,
            )
        return self._llm

    async def generate(self, prompt: str) -> str:
        llm = self._get_llm()
        try:
            response = await llm.ainvoke([HumanMessage(content=prompt)])
        except Exception as exc:
            raise PlanGenerationError(f"LLM request failed: {exc}") from exc
        text = _message_text(response).strip()
        if not text:
            raise PlanGenerationError("LLM returned an empty plan")
        return text


class BackendProxyGenerator:
    """Delegates generation to the backend's ``/generate`` endpoint."""

    def __init__(self, api: PlanApi) -> None:
        self.api = api

    async def generate(self, prompt: str) -> str:
        try:
            return await self.api.generate(prompt)
        except Exception as exc:
            raise PlanGenerationError(f"Backend generation failed: {exc}") from exc


class PlanGenerator:
    def __init__(
        self,
        diet_plans: PlanCacheService,
        workout_plans: PlanCacheService,
        rate_limiter: GenerationRateLimiter,
        generator: TextGenerator,
    ) -> None:
        self.diet_plans = diet_plans
        self.workout_plans = workout_plans
        self.rate_limiter = rate_limiter
        self.generator = generator

    async def _generate_text(self, kind: PlanKind, prompt: str) -> str:
        await self.rate_limiter.ensure_allowed(kind)
        logger.info("Generating %s plan", kind.value)
        return await self.generator.generate(prompt)

    async def generate_diet_plan(self, profile: UserProfile, today: Optional[date] = None) -> DietPlan:
        duration = compute_duration(profile)
        raw = await self._generate_text(PlanKind.DIET, build_diet_prompt(profile, duration))
        plan = parse_diet_plan(raw, profile, today)
        saved = await self.diet_plans.save_generated(plan)
        await self.rate_limiter.record_generation(PlanKind.DIET)
        return saved

    async def generate_workout_plan(self, profile: UserProfile, today: Optional[date] = None) -> WorkoutPlan:
        duration = compute_duration(profile)
        raw = await self._generate_text(PlanKind.WORKOUT, build_workout_prompt(profile, duration))
        plan = parse_workout_plan(raw, profile, today)
        saved = await self.workout_plans.save_generated(plan)
        await self.rate_limiter.record_generation(PlanKind.WORKOUT)
        return saved
