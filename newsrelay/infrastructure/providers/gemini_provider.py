"""
Gemini text generation through its OpenAI-compatible endpoint.
The SDK client is created with ``max_retries=0``; failures are translated
through the Gemini exception table.
"""

from typing import Any, Dict, List, Optional, Sequence, Type, Union

import openai
from openai import AsyncOpenAI

from ...config import Settings
from ...constants import DEFAULT_GEMINI_MODEL
from ...domain.exceptions import InvalidResponseError, ProviderError
from ...domain.models import ChatMessage
from ...enums import ProviderName
from ...logging import debug, warning, LogRecord, LogEvent
from .error_tables import (
    GEMINI_EXCEPTION_CODES,
    build_provider_error,
    classify_exception,
    parse_retry_after,
)
from .http_client_factory import HttpClientFactory
from .structured_output import parse_lines, parse_structured

# Gemini 2.5 Flash thinks by default; generation here does not need it
GEMINI_REASONING_EFFORT = "none"


class GeminiProvider:
    name = ProviderName.GEMINI

    def __init__(self, client: AsyncOpenAI, model: str = DEFAULT_GEMINI_MODEL) -> None:
        self._client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiProvider":
        if not settings.gemini_api_key:
            raise ValueError("gemini requires an API key")
        client = AsyncOpenAI(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            default_headers=HttpClientFactory.get_default_headers(settings),
            timeout=settings.provider_timeout_s,
            http_client=HttpClientFactory.create_sdk_client(settings),
            max_retries=0,
        )
        return cls(client, model=settings.gemini_model)

    async def aclose(self) -> None:
        await self._client.close()

    @staticmethod
    def build_messages(
        prompt: str, history: Optional[Sequence[ChatMessage]] = None
    ) -> List[Dict[str, str]]:
        messages = [{"role": m.role, "content": m.content} for m in history or ()]
        messages.append({"role": "user", "content": prompt})
        return messages

    def _translate(self, exc: openai.OpenAIError) -> ProviderError:
        code = classify_exception(exc, GEMINI_EXCEPTION_CODES)
        status_code = getattr(exc, "status_code", None)
        retry_after = None
        if isinstance(exc, openai.APIStatusError):
            retry_after = parse_retry_after(exc.response.headers.get("retry-after"))
        return build_provider_error(
            code,
            getattr(exc, "message", None) or str(exc),
            provider_name=self.name.value,
            retry_after=retry_after,
            status_code=status_code,
            details={"exception": type(exc).__name__, "status_code": status_code},
        )

    async def generate_text(
        self, prompt: str, history: Optional[Sequence[ChatMessage]] = None
    ) -> str:
        messages = self.build_messages(prompt, history)
        debug(
            LogRecord(
                event=LogEvent.PROVIDER_REQUEST.value,
                message="Calling gemini",
                data={
                    "provider": self.name.value,
                    "model": self.model,
                    "message_count": len(messages),
                },
            )
        )
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore[arg-type]
                reasoning_effort=GEMINI_REASONING_EFFORT,  # type: ignore[arg-type]
            )
        except openai.OpenAIError as exc:
            error = self._translate(exc)
            warning(
                LogRecord(
                    event=LogEvent.PROVIDER_ERROR_DETAILS.value,
                    message="gemini returned an error",
                    data={"provider": self.name.value, "code": error.code.value},
                ),
                exc=exc,
            )
            raise error from exc

        text = completion.choices[0].message.content if completion.choices else None
        if not text or not text.strip():
            raise InvalidResponseError(
                "Gemini returned an empty response", provider_name=self.name.value
            )
        return text

    async def generate_structured(
        self,
        prompt: str,
        history: Optional[Sequence[ChatMessage]] = None,
        expect: Union[Type[list], Type[dict]] = list,
    ) -> Any:
        text = await self.generate_text(prompt, history)
        return parse_structured(text, expect, provider_name=self.name.value)

    async def generate_lines(self, prompt: str) -> List[str]:
        return parse_lines(await self.generate_text(prompt))
