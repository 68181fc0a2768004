from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence
import logging

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from ..config import Settings, load_settings
from ..domain.errors import ModelUnavailableError
from ..domain.messages import CanonicalMessage

# Optional import: langchain-openai
try:
    from langchain_openai import ChatOpenAI  # type: ignore
except Exception:  # pragma: no cover - optional import
    ChatOpenAI = None  # type: ignore


LOG = logging.getLogger("verifier.llm")


class ChatModel(Protocol):
    def stream(self, messages: Sequence[CanonicalMessage]) -> AsyncIterator[str]: ...


def _human_content(message: CanonicalMessage) -> Any:
    if not message.media:
        return message.text
    parts: List[Dict[str, Any]] = [{"type": "text", "text": message.text}]
    for medium in message.media:
        parts.append({"type": "image_url", "image_url": {"url": medium.to_data_uri()}})
    return parts


def to_langchain_messages(messages: Sequence[CanonicalMessage]) -> List[BaseMessage]:
    out: List[BaseMessage] = []
    for message in messages:
        if message.role == "system":
            out.append(SystemMessage(content=message.text))
        elif message.role == "assistant":
            out.append(AIMessage(content=message.text))
        else:
            out.append(HumanMessage(content=_human_content(message)))
    return out


def _chunk_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces = []
        for part in content:
            if isinstance(part, str):
                pieces.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                pieces.append(str(part.get("text") or ""))
        return "".join(pieces)
    return ""


class LangChainChatModel:
    """Streams text fragments from any LangChain chat model."""

    def __init__(self, llm: Any, model_name: Optional[str] = None) -> None:
        self._llm = llm
        self.model_name = model_name

    async def stream(self, messages: Sequence[CanonicalMessage]) -> AsyncIterator[str]:
        lc_messages = to_langchain_messages(messages)
        LOG.debug(
            "llm_stream",
            extra={"model": self.model_name, "messages": len(lc_messages)},
        )
        async for chunk in self._llm.astream(lc_messages):
            text = _chunk_text(getattr(chunk, "content", chunk))
            if text:
                yield text


def get_chat_model(settings: Optional[Settings] = None) -> LangChainChatModel:
    settings = settings or load_settings()
    if not ChatOpenAI:
        raise ModelUnavailableError("LLM client not available")
    if not settings.openai_api_key:
        raise ModelUnavailableError("LLM not configured")
    LOG.info(
        "Using remote LLM provider model=%s base_url=%s",
        settings.openai_model,
        settings.openai_base_url or "default",
    )
    client = ChatOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.openai_model,
        temperature=settings.llm_temperature,
        timeout=settings.llm_timeout,
        streaming=True,
    )
    return LangChainChatModel(client, model_name=settings.openai_model)
