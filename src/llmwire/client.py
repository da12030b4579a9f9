"""ChatClient — runs one logical completion request at a time, streamed or not."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Callable, Sequence
from uuid import uuid4

import httpx

from llmwire.config import ConfigurationError, Settings, get_settings
from llmwire.models import (
    CompletionOptions,
    ConnectionResult,
    Credential,
    LLMWireError,
    Message,
    ProviderDescriptor,
    ProviderError,
    RequestState,
    Role,
    TransportError,
)
from llmwire.providers import PreparedRequest, ProtocolAdapter, build_request, get_adapter
from llmwire.providers.base import MessageLike, _shared_or_ephemeral, parse_error_message
from llmwire.registry import CredentialStore, ProviderRegistry
from llmwire.sse import aiter_deltas

logger = logging.getLogger(__name__)

TextCallback = Callable[[str], None]

_PROBE_MESSAGES = [Message(role=Role.USER, content='Say "ok".')]
_PROBE_MAX_TOKENS = 10

_INLINE_SYSTEM_PROMPT = (
    "You are an intelligent code completion assistant. Complete the code at the cursor "
    "position. Only output the completion text, no explanations, no markdown, no code "
    "fences. The code is in {language}."
)

_INLINE_USER_PROMPT = """\
Complete the code at [CURSOR]:

{prefix}[CURSOR]{suffix}

Output ONLY the completion text that goes at [CURSOR]. No explanations."""


def _notify(callback: TextCallback | None, text: str) -> None:
    if callback is not None:
        callback(text)


class RequestHandle:
    """One in-flight logical request and the signal that cancels it.

    ``cancel()`` may be called from any thread; the underlying asyncio task
    is always cancelled on its own event loop.
    """

    def __init__(self) -> None:
        self.request_id = uuid4().hex[:12]
        self.state = RequestState.IDLE
        self._cancel_requested = False
        self._task: asyncio.Task[str] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested

    def transition(self, state: RequestState) -> None:
        logger.debug("Request %s: %s -> %s", self.request_id, self.state.value, state.value)
        self.state = state

    def attach(self, task: asyncio.Task[str]) -> None:
        self._task = task
        self._loop = task.get_loop()
        # A cancel that raced ahead of attach() still has to land.
        if self._cancel_requested:
            task.cancel()

    def cancel(self) -> None:
        if self._cancel_requested or self.state.is_terminal:
            return
        self._cancel_requested = True
        task, loop = self._task, self._loop
        if task is None or loop is None or task.done():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            task.cancel()
        else:
            loop.call_soon_threadsafe(task.cancel)


class ChatClient:
    """Sends conversations to the active provider and normalises the reply.

    At most one request is active per client: starting a new one cancels the
    previous request, which then resolves with ``""``.
    """

    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        credentials: CredentialStore | None = None,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.registry = registry or ProviderRegistry.from_settings(self.settings)
        self.credentials = credentials or CredentialStore.from_settings(self.settings)
        self._http_client = http_client
        self._lock = threading.Lock()
        self._active: RequestHandle | None = None

    # -- Active request bookkeeping -------------------------------------------

    @property
    def active_request(self) -> RequestHandle | None:
        return self._active

    def cancel_active_request(self) -> None:
        """Abort the in-flight request, if any. Safe to call while idle."""
        with self._lock:
            handle, self._active = self._active, None
        if handle is not None:
            logger.info("Cancelling request %s", handle.request_id)
            handle.cancel()

    def _begin_request(self) -> RequestHandle:
        handle = RequestHandle()
        with self._lock:
            previous, self._active = self._active, handle
        if previous is not None:
            logger.info("Request %s superseded by %s", previous.request_id, handle.request_id)
            previous.cancel()
        return handle

    def _end_request(self, handle: RequestHandle) -> None:
        with self._lock:
            if self._active is handle:
                self._active = None

    def _resolve(self) -> tuple[ProviderDescriptor, Credential, str]:
        provider = self.registry.active_provider
        if provider is None:
            raise ConfigurationError("No active AI provider configured")
        credential = self.credentials.get(provider.id)
        if credential is None:
            raise ConfigurationError(f"No API key configured for {provider.display_name}")
        return provider, credential, self.registry.active_model_id

    # -- Public API -----------------------------------------------------------

    async def send_chat_completion(
        self,
        messages: Sequence[MessageLike],
        options: CompletionOptions | None = None,
        on_chunk: TextCallback | None = None,
        on_done: TextCallback | None = None,
        on_error: TextCallback | None = None,
    ) -> str:
        """Send *messages* to the active provider and return the full reply.

        Deltas go to ``on_chunk`` in wire order; ``on_done`` fires once, last,
        with the full text. Configuration, provider and transport failures are
        passed to ``on_error`` and raised. Cancellation is not an error: it
        resolves through ``on_done("")`` and returns ``""``.

        Args:
            messages: Conversation in order, as ``Message`` or role/content dicts.
            options: Sampling and streaming options. Defaults apply when omitted.

        Returns:
            The aggregated assistant text.
        """
        options = options or CompletionOptions()
        try:
            provider, credential, model_id = self._resolve()
        except ConfigurationError as e:
            _notify(on_error, str(e))
            raise

        should_stream = options.stream
        model = provider.get_model(model_id)
        if should_stream and model is not None and not model.supports_streaming:
            logger.debug("Model %s cannot stream, using a single response", model_id)
            should_stream = False

        adapter = get_adapter(provider.protocol)
        prepared = build_request(
            provider,
            model_id,
            messages,
            options,
            credential,
            default_system_prompt=self.settings.system_prompt or None,
            stream=should_stream,
        )

        handle = self._begin_request()
        logger.info(
            "Request %s: %s/%s (stream=%s)",
            handle.request_id,
            provider.id,
            model_id or "<none>",
            should_stream,
        )
        task = asyncio.ensure_future(
            self._perform(handle, prepared, adapter, should_stream, on_chunk),
        )
        handle.attach(task)

        try:
            text = await task
        except asyncio.CancelledError:
            if not handle.cancelled:
                # The caller's own task was cancelled; that is theirs to handle.
                task.cancel()
                raise
            handle.transition(RequestState.CANCELLED)
            logger.info("Request %s cancelled", handle.request_id)
            _notify(on_done, "")
            return ""
        except LLMWireError as e:
            handle.transition(RequestState.FAILED)
            logger.info("Request %s failed: %s", handle.request_id, e)
            _notify(on_error, str(e))
            raise
        except Exception:
            handle.transition(RequestState.FAILED)
            raise
        finally:
            self._end_request(handle)

        handle.transition(RequestState.DONE)
        logger.info("Request %s done (%d chars)", handle.request_id, len(text))
        _notify(on_done, text)
        return text

    async def astream_chat_completion(
        self,
        messages: Sequence[MessageLike],
        options: CompletionOptions | None = None,
    ) -> AsyncIterator[str]:
        """Yield text deltas as they arrive; errors are raised at the end."""
        queue: asyncio.Queue[str | None] = asyncio.Queue()
        task = asyncio.ensure_future(
            self.send_chat_completion(messages, options, on_chunk=queue.put_nowait),
        )
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while True:
                delta = await queue.get()
                if delta is None:
                    break
                yield delta
            await task
        finally:
            if not task.done():
                task.cancel()

    async def send_inline_completion(
        self,
        prefix: str,
        suffix: str,
        language: str,
        on_done: TextCallback | None = None,
        on_error: TextCallback | None = None,
    ) -> str:
        """Ask for the text that belongs between *prefix* and *suffix* (ghost text)."""
        limit = self.settings.inline_max_context_chars
        if limit > 0:
            prefix = prefix[-limit:]
            suffix = suffix[:limit]
        messages = [
            Message(role=Role.SYSTEM, content=_INLINE_SYSTEM_PROMPT.format(language=language)),
            Message(role=Role.USER, content=_INLINE_USER_PROMPT.format(prefix=prefix, suffix=suffix)),
        ]
        options = CompletionOptions(
            temperature=self.settings.code_temperature,
            max_tokens=self.settings.inline_max_tokens,
            stream=False,
        )
        return await self.send_chat_completion(
            messages,
            options,
            on_done=on_done,
            on_error=on_error,
        )

    async def test_provider_connection(
        self,
        provider: ProviderDescriptor,
        credential: Credential,
    ) -> ConnectionResult:
        """Probe *provider* with a tiny non-streaming request to validate the key."""
        options = CompletionOptions(max_tokens=_PROBE_MAX_TOKENS, stream=False)
        prepared = build_request(
            provider,
            provider.default_model_id,
            _PROBE_MESSAGES,
            options,
            credential,
        )
        try:
            async with _shared_or_ephemeral(self._http_client, self.settings.timeout) as client:
                resp = await client.post(
                    prepared.url,
                    headers=prepared.headers,
                    content=prepared.body,
                    timeout=self.settings.timeout,
                )
        except httpx.HTTPError as e:
            return ConnectionResult(success=False, error=str(e) or type(e).__name__)

        if resp.is_success:
            return ConnectionResult(success=True)
        error = parse_error_message(resp.text, f"HTTP {resp.status_code}")
        logger.info("Connection test for %s failed: %s", provider.id, error)
        return ConnectionResult(success=False, error=error)

    # -- Transport ------------------------------------------------------------

    async def _perform(
        self,
        handle: RequestHandle,
        prepared: PreparedRequest,
        adapter: ProtocolAdapter,
        stream: bool,
        on_chunk: TextCallback | None,
    ) -> str:
        handle.transition(RequestState.SENDING)
        try:
            async with _shared_or_ephemeral(self._http_client, self.settings.timeout) as client:
                if stream:
                    return await self._stream(client, handle, prepared, adapter, on_chunk)
                return await self._fetch(client, handle, prepared, adapter)
        except httpx.TransportError as e:
            raise TransportError(f"Network error: {str(e) or type(e).__name__}") from e
        except httpx.HTTPError as e:
            # Body decoding failures, e.g. a corrupt gzip stream.
            raise TransportError(f"Transport error: {str(e) or type(e).__name__}") from e

    async def _stream(
        self,
        client: httpx.AsyncClient,
        handle: RequestHandle,
        prepared: PreparedRequest,
        adapter: ProtocolAdapter,
        on_chunk: TextCallback | None,
    ) -> str:
        async with client.stream(
            "POST",
            prepared.url,
            headers=prepared.headers,
            content=prepared.body,
            timeout=self.settings.timeout,
        ) as resp:
            if not resp.is_success:
                body = await resp.aread()
                raise _provider_error(resp.status_code, body.decode("utf-8", errors="replace"))

            handle.transition(RequestState.STREAMING)
            parts: list[str] = []
            async for delta in aiter_deltas(resp.aiter_bytes(), adapter):
                parts.append(delta)
                _notify(on_chunk, delta)
            return "".join(parts)

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        handle: RequestHandle,
        prepared: PreparedRequest,
        adapter: ProtocolAdapter,
    ) -> str:
        handle.transition(RequestState.AWAITING_RESPONSE)
        resp = await client.post(
            prepared.url,
            headers=prepared.headers,
            content=prepared.body,
            timeout=self.settings.timeout,
        )
        if not resp.is_success:
            raise _provider_error(resp.status_code, resp.text)
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(
                "Provider returned a response that is not valid JSON",
                status_code=resp.status_code,
            ) from e
        return adapter.extract_text(data) if isinstance(data, dict) else ""


def _provider_error(status_code: int, body: str) -> ProviderError:
    message = parse_error_message(body, f"API error {status_code}")
    logger.warning("Provider returned HTTP %d: %s", status_code, message)
    return ProviderError(message, status_code=status_code)
