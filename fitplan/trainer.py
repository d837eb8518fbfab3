from __future__ import annotations

import logging
import os
import re
import time
from datetime import date
from typing import Any, Callable, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from fitplan.config.constants import LLM_MODEL, TRAINER_CONVERSATIONS_KEY, TRAINER_CURRENT_CONVERSATION_KEY
from fitplan.models import DietPlan, UserProfile, WorkoutPlan
from fitplan.plan.plan_generation import _message_text
from fitplan.prompts.system_prompt import SYSTEM_PROMPT, build_trainer_context
from fitplan.redis.cache import KeyValueStore, _store_get_json, _store_remove, _store_set_json
from fitplan.tools.plan_cache import PlanCacheService
from fitplan.user_context import UserContext

logger = logging.getLogger(__name__)

MAX_MESSAGES_PER_CONVERSATION = 100
# prior turns sent back to the model with each message
HISTORY_WINDOW = 10
DEFAULT_TITLE = "New Chat"

_WORKOUT_KEYWORDS = ["workout", "exercise", "training", "gym", "lift", "cardio", "strength", "muscle", "sets", "reps"]
_DIET_KEYWORDS = ["diet", "nutrition", "food", "meal", "calories", "protein", "carbs", "fat", "eating", "weight"]
_MOTIVATION_KEYWORDS = ["motivation", "encourage", "goal", "progress", "mindset", "confidence", "believe", "achieve"]

_FALLBACK_REPLIES = {
    "workout": "I can't reach the coaching service right now. Stick with today's planned workout and focus on good form.",
    "diet": "I can't reach the coaching service right now. Follow today's meals from your diet plan and stay hydrated.",
    "motivation": "I can't reach the coaching service right now. Small consistent days add up, keep going.",
    "general": "Sorry for the inconvenience. AI is temporarily unavailable, please try again shortly.",
}

_LEADING_FILLER_RE = re.compile(
    r"^(hi|hello|hey|how|what|when|where|why|can|could|would|should|i|i'm|i am|help|need|want|looking|tell|give|show|explain|please)\s+",
    re.IGNORECASE,
)


class ChatMessage(BaseModel):
    id: str
    type: str
    message: str
    timestamp: float
    category: Optional[str] = None


class Conversation(BaseModel):
    id: str
    title: str = DEFAULT_TITLE
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: float
    updated_at: float


def categorize_message(user_message: str, ai_message: str = "") -> str:
    text = f"{user_message} {ai_message}".lower()
    if any(keyword in text for keyword in _WORKOUT_KEYWORDS):
        return "workout"
    if any(keyword in text for keyword in _DIET_KEYWORDS):
        return "diet"
    if any(keyword in text for keyword in _MOTIVATION_KEYWORDS):
        return "motivation"
    return "general"


def title_from_message(message: str, category: str) -> str:
    lower = message.lower()
    if category == "workout":
        if "workout plan" in lower or "training plan" in lower:
            return "Workout Plan Discussion"
        if "cardio" in lower or "running" in lower:
            return "Cardio Training"
        if "muscle" in lower or "strength" in lower:
            return "Strength Training"
    if category == "diet":
        if "diet plan" in lower or "meal plan" in lower:
            return "Diet Plan Discussion"
        if "protein" in lower:
            return "Protein Intake"
    cleaned = _LEADING_FILLER_RE.sub("", message.strip())
    words = [word for word in cleaned.split() if len(word) > 3]
    if not words:
        return {"workout": "Workout Advice", "diet": "Diet Advice", "motivation": "Motivation"}.get(category, "Fitness Chat")
    title = " ".join(words[:3]).rstrip("?!.,")
    if not title:
        return "Fitness Chat"
    if len(title) > 30:
        title = title[:30] + "..."
    return title[0].upper() + title[1:]


class TrainerChat:
    """Conversational coach with per-user conversations kept in the store."""

    def __init__(
        self,
        store: KeyValueStore,
        user: UserContext,
        diet_plans: PlanCacheService,
        workout_plans: PlanCacheService,
        llm: Any = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.user = user
        self.diet_plans = diet_plans
        self.workout_plans = workout_plans
        self._llm = llm
        self._clock = clock

    def _get_llm(self) -> Optional[Any]:
        if self._llm is None and os.getenv("OPENAI_API_KEY"):
            self._llm = ChatOpenAI(
                model=LLM_MODEL,
                temperature=0.7,
                max_retries=0,
                request_timeout=30,
                base_url=os.getenv("OPENAI_BASE_URL") or None,
            )
        return self._llm

    async def list_conversations(self) -> List[Conversation]:
        raw = await _store_get_json(self.store, self.user.key(TRAINER_CONVERSATIONS_KEY))
        conversations = []
        for entry in raw if isinstance(raw, list) else []:
            try:
                conversations.append(Conversation.model_validate(entry))
            except ValueError as exc:
                logger.warning("Skipping unreadable conversation: %s", exc)
        return sorted(conversations, key=lambda conv: conv.updated_at, reverse=True)

    async def _save_conversations(self, conversations: List[Conversation]) -> None:
        await _store_set_json(
            self.store,
            self.user.key(TRAINER_CONVERSATIONS_KEY),
            [conv.model_dump(mode="json") for conv in conversations],
        )

    async def current_conversation_id(self) -> Optional[str]:
        value = await _store_get_json(self.store, self.user.key(TRAINER_CURRENT_CONVERSATION_KEY))
        return str(value) if value else None

    async def _set_current(self, conversation_id: Optional[str]) -> None:
        key = self.user.key(TRAINER_CURRENT_CONVERSATION_KEY)
        if conversation_id is None:
            await _store_remove(self.store, key)
        else:
            await _store_set_json(self.store, key, conversation_id)

    async def create_conversation(self) -> Conversation:
        now = self._clock()
        conversation = Conversation(id=f"conv_{int(now * 1000)}", created_at=now, updated_at=now)
        conversations = await self.list_conversations()
        conversations.insert(0, conversation)
        await self._save_conversations(conversations)
        await self._set_current(conversation.id)
        return conversation

    async def load_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Make a conversation current; ``None`` if it does not exist."""
        for conversation in await self.list_conversations():
            if conversation.id == conversation_id:
                await self._set_current(conversation.id)
                return conversation
        return None

    async def delete_conversation(self, conversation_id: str) -> bool:
        conversations = await self.list_conversations()
        remaining = [conv for conv in conversations if conv.id != conversation_id]
        if len(remaining) == len(conversations):
            return False
        await self._save_conversations(remaining)
        if await self.current_conversation_id() == conversation_id:
            await self._set_current(remaining[0].id if remaining else None)
        return True

    async def _current(self, conversations: List[Conversation]) -> Conversation:
        current_id = await self.current_conversation_id()
        for conversation in conversations:
            if conversation.id == current_id:
                return conversation
        conversation = await self.create_conversation()
        conversations.insert(0, conversation)
        return conversation

    def _history_messages(self, conversation: Conversation) -> List[BaseMessage]:
        history: List[BaseMessage] = []
        for entry in conversation.messages[-HISTORY_WINDOW:]:
            if entry.type == "user":
                history.append(HumanMessage(content=entry.message))
            else:
                history.append(AIMessage(content=entry.message))
        return history

    async def send_message(
        self,
        text: str,
        profile: Optional[UserProfile] = None,
        today: Optional[date] = None,
    ) -> ChatMessage:
        """Ask the trainer; the exchange is stored only when the model answered."""
        now = self._clock()
        conversations = await self.list_conversations()
        conversation = await self._current(conversations)
        diet_plan = await self.diet_plans.load()
        workout_plan = await self.workout_plans.load()
        context = build_trainer_context(
            profile,
            diet_plan if isinstance(diet_plan, DietPlan) else None,
            workout_plan if isinstance(workout_plan, WorkoutPlan) else None,
            today,
        )
        messages: List[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT), SystemMessage(content=context)]
        messages.extend(self._history_messages(conversation))
        messages.append(HumanMessage(content=text))

        llm = self._get_llm()
        reply = ""
        if llm is None:
            logger.warning("OPENAI_API_KEY is not set, answering with a fallback reply")
        else:
            try:
                response = await llm.ainvoke(messages)
                reply = _message_text(response).strip()
            except Exception as exc:
                logger.warning("Trainer request failed: %s", exc)
        if not reply:
            category = categorize_message(text)
            return ChatMessage(
                id=f"ai_{int(now * 1000)}",
                type="ai",
                message=_FALLBACK_REPLIES[category],
                timestamp=now,
                category=category,
            )

        category = categorize_message(text, reply)
        stamp = int(now * 1000)
        answer = ChatMessage(id=f"ai_{stamp + 1}", type="ai", message=reply, timestamp=now, category=category)
        conversation.messages.append(ChatMessage(id=f"user_{stamp}", type="user", message=text, timestamp=now))
        conversation.messages.append(answer)
        conversation.messages = conversation.messages[-MAX_MESSAGES_PER_CONVERSATION:]
        if conversation.title == DEFAULT_TITLE:
            first_user = next(entry for entry in conversation.messages if entry.type == "user")
            conversation.title = title_from_message(first_user.message, category)
        conversation.updated_at = now
        await self._save_conversations(conversations)
        return answer
