from typing import AsyncGenerator, Dict, List, Optional, Protocol, Sequence

import httpx
import openai
from openai import AsyncOpenAI

from orcachat.common.custom_exceptions import UpstreamError
from orcachat.config.settings import Settings
from orcachat.chat.constants import logger

History = Sequence[Dict[str, str]]


class ChatModel(Protocol):
    def stream_completion(self, history: History) -> AsyncGenerator[str, None]:
        """Lazy, finite, non-restartable fragments of the reply to `history`."""
        ...


class OpenAIChatModel:
    def __init__(self, model: str, api_key: Optional[str] = None, system_prompt: Optional[str] = None,
                 client: Optional[AsyncOpenAI] = None):
        self.model = model
        self.system_prompt = system_prompt
        self.client = client or AsyncOpenAI(api_key=api_key)

    def _messages(self, history: History) -> List[Dict[str, str]]:
        messages = [{"role": t["role"], "content": t["content"]} for t in history]
        if self.system_prompt:
            messages.insert(0, {"role": "system", "content": self.system_prompt})
        return messages

    async def stream_completion(self, history: History) -> AsyncGenerator[str, None]:
        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=self._messages(history),
                stream=True,
            )
            async with stream:
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    token = chunk.choices[0].delta.content
                    if token:
                        yield token
        except (openai.OpenAIError, httpx.HTTPError) as exc:
            logger.error("chat.model.stream_failed", extra={"model": self.model, "error": repr(exc)})
            raise UpstreamError(f"LLM stream failed: {type(exc).__name__}") from exc


class EchoChatModel:
    """Offline model for dev/tests: streams the latest user turn back word by word."""

    async def stream_completion(self, history: History) -> AsyncGenerator[str, None]:
        last = next((t["content"] for t in reversed(history) if t["role"] == "user"), "")
        for i, word in enumerate(last.split(" ")):
            piece = word if i == 0 else " " + word
            if piece:
                yield piece


def build_chat_model(settings: Settings) -> ChatModel:
    if settings.MOCK_LLM or not settings.OPENAI_API_KEY:
        logger.warning("chat.model.echo_mode", extra={"reason": "MOCK_LLM set or OPENAI_API_KEY missing"})
        return EchoChatModel()
    return OpenAIChatModel(
        model=settings.OPENAI_MODEL,
        api_key=settings.OPENAI_API_KEY,
        system_prompt=settings.CHAT_SYSTEM_PROMPT,
    )
