"""Conversational passthrough to the text generator."""

from typing import Any, Dict, List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from .clock import Clock, utc_now
from .orchestrator import FetchOrchestrator
from ..domain.exceptions import InvalidQueryError
from ..domain.models import ChatMessage
from ..enums import ProviderName
from ..infrastructure.providers.base import TextGenerator

_HISTORY_ADAPTER = TypeAdapter(List[ChatMessage])


class ChatService:
    """Quota-charged, uncached chat turns."""

    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        generator: TextGenerator,
        model_name: Optional[str] = None,
        clock: Clock = utc_now,
    ):
        self._orchestrator = orchestrator
        self._generator = generator
        self._model_name = model_name
        self._clock = clock

    @staticmethod
    def validate_history(history: Any, request_id: Optional[str] = None) -> List[ChatMessage]:
        if history is None:
            return []
        try:
            return _HISTORY_ADAPTER.validate_python(history)
        except ValidationError as exc:
            raise InvalidQueryError(
                "history must be a list of {role, content} messages",
                field="history",
                request_id=request_id,
                details={"errors": exc.error_count()},
            ) from exc

    async def chat(
        self,
        identity: Optional[str],
        message: Optional[str],
        history: Optional[Sequence[Any]] = None,
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        identity = self._orchestrator.require_identity(identity, request_id)
        if not isinstance(message, str) or not message.strip():
            raise InvalidQueryError(
                "message is required", field="message", request_id=request_id
            )
        turns = self.validate_history(history, request_id)
        text = await self._orchestrator.passthrough(
            identity,
            lambda: self._generator.generate_text(message.strip(), turns),
            provider_name=ProviderName.GEMINI.value,
            request_id=request_id,
        )
        return {
            "response": text,
            "timestamp": self._clock().isoformat(),
            "metadata": {"model": self._model_name, "historyLength": len(turns)},
        }
