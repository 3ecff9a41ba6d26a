from typing import Any, List, Optional, Sequence, Type, Union
from typing_extensions import Protocol

from ...domain.models import ArticleQuery, ChatMessage, ProviderResult
from ...enums import ProviderName


class ArticleProvider(Protocol):
    name: ProviderName

    def supports_topic(self, topic: str) -> bool: ...

    async def fetch_articles(self, query: ArticleQuery) -> ProviderResult: ...


class TextGenerator(Protocol):
    name: ProviderName

    async def generate_text(
        self, prompt: str, history: Optional[Sequence[ChatMessage]] = None
    ) -> str: ...

    async def generate_structured(
        self,
        prompt: str,
        history: Optional[Sequence[ChatMessage]] = None,
        expect: Union[Type[list], Type[dict]] = list,
    ) -> Any: ...

    async def generate_lines(self, prompt: str) -> List[str]: ...
