"""ChatSession — a conversation that owns its ChatClient."""

from __future__ import annotations

import logging
import time
from uuid import uuid4

from pydantic import BaseModel, Field

from llmwire.client import ChatClient, TextCallback
from llmwire.codeblocks import extract_code_blocks
from llmwire.config import Settings
from llmwire.context import build_context_string, truncate_to_token_budget
from llmwire.models import CodeBlock, CompletionOptions, ContextItem, LLMWireError, Message, Role

logger = logging.getLogger(__name__)

_TITLE_MAX_CHARS = 50


class ChatTurn(BaseModel):
    """One message of a conversation as the user sees it."""

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    role: Role
    content: str = ""
    timestamp: float = Field(default_factory=time.time)
    code_blocks: list[CodeBlock] = Field(default_factory=list)


class Conversation(BaseModel):
    """Ordered chat history plus the provider/model it was held with."""

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    title: str = ""
    messages: list[ChatTurn] = Field(default_factory=list)
    provider_id: str = ""
    model_id: str = ""
    created_at: float = Field(default_factory=time.time)


def _make_title(text: str) -> str:
    if len(text) > _TITLE_MAX_CHARS:
        return text[:_TITLE_MAX_CHARS] + "..."
    return text


class ChatSession:
    """Drives a conversation turn by turn through a ChatClient.

    Failures are recorded in ``last_error`` rather than raised, so a UI can
    show the message and move on.
    """

    def __init__(self, client: ChatClient, settings: Settings | None = None) -> None:
        self.client = client
        self.settings = settings or client.settings
        self.conversation = Conversation()
        self.context_items: list[ContextItem] = []
        self.is_streaming = False
        self.stream_content = ""
        self.last_error: str | None = None

    def add_context(self, item: ContextItem) -> None:
        self.context_items.append(item)

    def clear_context(self) -> None:
        self.context_items.clear()

    def reset(self) -> None:
        """Start a fresh conversation, cancelling anything in flight."""
        self.client.cancel_active_request()
        self.conversation = Conversation()

    def cancel(self) -> None:
        self.client.cancel_active_request()

    def _build_messages(self, system_prompt: str | None = None) -> list[Message]:
        messages: list[Message] = []
        context = build_context_string(self.context_items)
        if context:
            context = truncate_to_token_budget(context, self.settings.max_context_tokens)
            content = f"Here is relevant context:\n\n{context}"
            # The context message suppresses prompt injection, so carry the prompt here.
            if system_prompt:
                content = f"{system_prompt}\n\n{content}"
            messages.append(Message(role=Role.SYSTEM, content=content))
        messages.extend(
            Message(role=turn.role, content=turn.content) for turn in self.conversation.messages
        )
        return messages

    async def send(
        self,
        user_content: str,
        on_chunk: TextCallback | None = None,
        options: CompletionOptions | None = None,
    ) -> str:
        """Append a user turn, stream the assistant reply into the history, return it."""
        options = options or CompletionOptions(temperature=self.settings.chat_temperature)
        conversation = self.conversation
        if not conversation.messages:
            conversation.title = _make_title(user_content)
            provider = self.client.registry.active_provider
            conversation.provider_id = provider.id if provider else ""
            conversation.model_id = self.client.registry.active_model_id

        conversation.messages.append(ChatTurn(role=Role.USER, content=user_content))
        messages = self._build_messages(options.system_prompt or self.settings.system_prompt)

        reply = ChatTurn(role=Role.ASSISTANT)
        conversation.messages.append(reply)
        self.is_streaming = True
        self.stream_content = ""
        self.last_error = None

        def _on_chunk(delta: str) -> None:
            self.stream_content += delta
            reply.content = self.stream_content
            if on_chunk is not None:
                on_chunk(delta)

        text = ""
        try:
            text = await self.client.send_chat_completion(
                messages,
                options,
                on_chunk=_on_chunk,
            )
            reply.content = text
            reply.code_blocks = extract_code_blocks(text)
        except LLMWireError as e:
            self.last_error = str(e)
            logger.info("Chat turn failed: %s", e)
        finally:
            self.is_streaming = False
            self.stream_content = ""
        return text
