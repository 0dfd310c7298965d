import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from app.core.config import Settings
from app.services.errors import AssistantUnavailableError
from app.services.intent_service import booking_tool_definition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssistantReply:
    text: str
    # Raw JSON arguments of a book_appointment tool call, when the model made one
    tool_arguments: str | None = None


class TextGenerator(Protocol):
    async def generate(self, system_prompt: str, message: str) -> AssistantReply: ...


class ChatCompletionsAssistant:
    """Client for an OpenAI-compatible /chat/completions endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout: float = 30.0,
        use_tools: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.use_tools = use_tools
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatCompletionsAssistant":
        return cls(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.llm_timeout_seconds,
            use_tools=settings.llm_use_tools,
        )

    def _payload(self, system_prompt: str, message: str) -> dict:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": message},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.use_tools:
            payload["tools"] = [booking_tool_definition()]
            payload["tool_choice"] = "auto"
        return payload

    async def generate(self, system_prompt: str, message: str) -> AssistantReply:
        if not self.api_key:
            raise AssistantUnavailableError("Assistant API key is not configured")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=self._payload(system_prompt, message),
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.TimeoutException as e:
            logger.warning("Assistant call timed out after %ss", self.timeout)
            raise AssistantUnavailableError("Assistant timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Assistant call failed: %s", e)
            raise AssistantUnavailableError("Assistant is unavailable") from e
        if resp.status_code != 200:
            logger.warning("Assistant returned status=%s body=%s", resp.status_code, resp.text[:500])
            raise AssistantUnavailableError(f"Assistant returned HTTP {resp.status_code}")
        return self._parse(resp)

    @staticmethod
    def _parse(resp: httpx.Response) -> AssistantReply:
        try:
            message = resp.json()["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("Assistant response malformed: %s", resp.text[:500])
            raise AssistantUnavailableError("Assistant response was malformed") from e
        arguments = None
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            if function.get("name") == "book_appointment":
                arguments = function.get("arguments")
                break
        return AssistantReply(text=message.get("content") or "", tool_arguments=arguments)
