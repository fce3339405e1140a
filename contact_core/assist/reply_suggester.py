from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from contact_core.config.settings import settings
from contact_core.domain.models import ChatMessage, ChatRequest
from contact_core.prompts import load_prompt
from contact_core.providers.base import ProviderClient
from .parsing import parse_model_output
from .retry import RetryPolicy


class ReplySuggestions(BaseModel):
    sentiment: Literal["positive", "negative", "neutral"] = "neutral"
    suggested_replies: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("suggested_replies", "suggestedReplies"),
    )

    @field_validator("sentiment", mode="before")
    @classmethod
    def normalize_sentiment(cls, v):
        v = str(v or "").strip().lower()
        return v if v in ("positive", "negative", "neutral") else "neutral"

    @field_validator("suggested_replies")
    @classmethod
    def drop_blank(cls, v: List[str]) -> List[str]:
        return [r.strip() for r in v if r and r.strip()]


class ReplySuggester:
    """根据用户消息的情绪给坐席提供回复建议。"""

    def __init__(self, client: ProviderClient, model: Optional[str] = None, retry: Optional[RetryPolicy] = None):
        self._client = client
        self._model = model or settings.default_model
        self._retry = retry

    def suggest(self, message: str) -> ReplySuggestions:
        if not (message or "").strip():
            return ReplySuggestions()
        prompt = load_prompt("suggest_replies").substitute(message=message.strip())
        req = ChatRequest(
            provider=self._client.name,
            model=self._model,
            messages=[ChatMessage(role="user", content=prompt)],
            temperature=0.7,
        )
        if self._retry is not None:
            result = self._retry.run(lambda: self._client.chat(req), label="suggest_replies")
        else:
            result = self._client.chat(req)
        return parse_model_output(result.content, ReplySuggestions)
