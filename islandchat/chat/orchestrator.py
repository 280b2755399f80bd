"""Chat orchestration: request, stream, search, and resume."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING

import httpx
import ollama

from islandchat.chat.detector import SearchDetector, detect_search
from islandchat.chat.models import (
    ChatPreferences,
    ChatState,
    Done,
    QuickAction,
    ToolCallDetected,
    Turn,
)
from islandchat.chat.session import ConversationSession
from islandchat.chat.state import StateStore
from islandchat.constants import ChatConstants, ChatPhase, MessageRole, ProgressLabel
from islandchat.ollama.client import OllamaClient
from islandchat.ollama.errors import OllamaServerError, ToolsUnsupportedError
from islandchat.ollama.models import ChatMessage, ChatRequest
from islandchat.responses import IslandResponse
from islandchat.search.models import SearchEngineConfig
from islandchat.search.provider import SearchProvider
from islandchat.search.tool import WebSearchTool

if TYPE_CHECKING:
    from islandchat.config import Config

logger = logging.getLogger(__name__)


class ChatOrchestrator:
    """
    Drives the conversation with the model server.

    Commands are plain methods called from the event loop. A send starts one
    background task that streams the answer, runs a web search whenever the model
    asks for one, feeds the results back and resumes, until a final answer arrives.
    Everything the UI needs is published through ``store``.
    """

    def __init__(
        self,
        config: Config,
        preferences: ChatPreferences | None = None,
        *,
        search_provider: SearchProvider | None = None,
        on_preferences_changed: Callable[[ChatPreferences], None] | None = None,
    ):
        self.config = config
        self.store = StateStore(ChatState(preferences=preferences or config.preferences()))
        self.session = ConversationSession(self.store)
        self.search_provider = search_provider or SearchProvider(
            timeout=config.search_timeout, duckduckgo_url=config.duckduckgo_url
        )
        self.web_search_tool = WebSearchTool()
        self.on_preferences_changed = on_preferences_changed
        self.ollama: OllamaClient | None = None
        self._streaming_turn_id: int | None = None
        self._banner_tasks: dict[str, asyncio.Task] = {}
        self._background_tasks: set[asyncio.Task] = set()

        prefs = self.state.preferences
        self._connect(prefs.server_url, prefs.api_key)

    @property
    def state(self) -> ChatState:
        return self.store.value

    # --- Connection ---

    def _connect(self, url: str, api_key: str | None) -> None:
        old = self.ollama
        if old is not None:
            self._spawn(old.close())
        url = url.strip()
        if url.startswith("http"):
            self.ollama = OllamaClient(
                url,
                api_key or None,
                connect_timeout=self.config.ollama_connect_timeout,
                read_timeout=self.config.ollama_read_timeout,
            )
        else:
            self.ollama = None

    async def start(self) -> None:
        """Check the server, load its models, and greet the user."""
        prefs = self.state.preferences
        if not prefs.server_url.strip().startswith("http"):
            self._show_info(IslandResponse.WELCOME)
            return

        await self.refresh_models()
        if not self.state.is_server_reachable:
            return
        if not prefs.selected_model:
            self._show_info(IslandResponse.SELECT_MODEL)
        else:
            self._show_info(IslandResponse.READY)

    async def refresh_models(self) -> None:
        """Probe the server and reload the list of installed models."""
        if self.ollama is None:
            self.store.set(is_server_reachable=False, available_models=[])
            return

        if not await self.ollama.health_check():
            self.store.set(is_server_reachable=False, available_models=[])
            self._show_error(IslandResponse.SERVER_UNREACHABLE)
            return
        self.store.set(is_server_reachable=True)

        with contextlib.suppress(httpx.HTTPError, ValueError):
            logger.info("Connected to Ollama %s", await self.ollama.get_version())

        try:
            models = await self.ollama.list_models()
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            logger.warning("Failed to load models: %s", e)
            self._show_error(IslandResponse.MODEL_LOAD_FAILED.format(error=e))
            return

        logger.info("Loaded %d model(s)", len(models))
        self.store.set(available_models=models)

    def set_connection_details(self, url: str, api_key: str | None = None) -> asyncio.Task | None:
        """Point at a new server and re-check it in the background."""
        self._update_preferences(server_url=url, api_key=api_key)
        self._connect(url, api_key)
        if self.ollama is None:
            self.store.set(is_server_reachable=False, available_models=[])
            self._show_error(IslandResponse.INVALID_SERVER_URL)
            return None
        return self._spawn(self.refresh_models())

    # --- Preferences ---

    def _update_preferences(self, **changes) -> ChatPreferences:
        prefs = self.state.preferences.model_copy(update=changes)
        self.store.set(preferences=prefs)
        if self.on_preferences_changed is not None:
            self.on_preferences_changed(prefs)
        return prefs

    def select_model(self, model_id: str) -> None:
        """Switch models; the new one gets a fresh chance at structured tool calls."""
        self._update_preferences(selected_model=model_id)
        self.session.model_supports_tools = True
        logger.info("Selected model: %s", model_id)

    def toggle_web_search(self, enabled: bool) -> None:
        self._update_preferences(web_search_enabled=enabled)

    def toggle_streaming(self, enabled: bool) -> None:
        self._update_preferences(streaming_enabled=enabled)

    def add_search_engine(
        self,
        name: str,
        type: str,
        url: str,
        api_key: str | None = None,
        auth_header: str = ChatConstants.DEFAULT_AUTH_HEADER,
    ) -> SearchEngineConfig:
        engine = SearchEngineConfig(
            id=str(uuid.uuid4()),
            name=name,
            type=type,
            url=url,
            api_key=api_key or None,
            auth_header=auth_header,
        )
        self._update_preferences(search_engines=[*self.state.preferences.search_engines, engine])
        logger.info("Added search engine %s (%s)", name, type)
        return engine

    def remove_search_engine(self, engine_id: str) -> None:
        """Remove an engine; built-in ones stay. Falls back to the default if it was selected."""
        prefs = self.state.preferences
        engine = next((e for e in prefs.search_engines if e.id == engine_id), None)
        if engine is None or not engine.is_deletable:
            return

        selected = prefs.selected_search_engine_id
        if selected == engine_id:
            selected = ChatConstants.DEFAULT_SEARCH_ENGINE_ID
        self._update_preferences(
            search_engines=[e for e in prefs.search_engines if e.id != engine_id],
            selected_search_engine_id=selected,
        )

    def select_search_engine(self, engine_id: str) -> None:
        if not any(e.id == engine_id for e in self.state.preferences.search_engines):
            logger.warning("Ignoring unknown search engine: %s", engine_id)
            return
        self._update_preferences(selected_search_engine_id=engine_id)

    # --- Conversation commands ---

    def attach_images(self, images: list[str]) -> None:
        self.store.update(
            lambda s: s.model_copy(update={"attached_images": [*s.attached_images, *images]})
        )

    def clear_attached_images(self) -> None:
        self.store.set(attached_images=[])

    def clear_messages(self) -> None:
        self.session.clear()

    def delete_message(self, turn_id: int) -> None:
        self.session.remove_turn(turn_id)

    def perform_quick_action(self, action: QuickAction) -> asyncio.Task | None:
        return self.send(action.prompt)

    def send(self, text: str) -> asyncio.Task | None:
        """
        Start answering ``text``, replacing any generation already in flight.

        Returns the generation task, or None if nothing was sent.
        """
        prefs = self.state.preferences
        if not prefs.selected_model:
            self._show_error(IslandResponse.NO_MODEL_SELECTED)
            return None
        if self.ollama is None:
            self._show_error(IslandResponse.INVALID_SERVER_URL)
            return None

        images = list(self.state.attached_images)
        if not text.strip() and not images:
            return None

        self.cancel()

        user_turn = Turn(
            id=self.session.next_id(),
            role=MessageRole.USER,
            content=text,
            images=images or None,
        )
        history = list(self.session.turns)
        self.session.append_turn(user_turn)
        self.store.set(
            attached_images=[],
            is_loading=True,
            is_searching=False,
            search_query=None,
            phase=ChatPhase.REQUESTING,
            progress=ProgressLabel.IDLE,
        )

        messages = self.session.build_request_messages(
            history, prefs.web_search_enabled, new_turn=user_turn
        )
        task = asyncio.get_running_loop().create_task(
            self._generate(
                prefs.selected_model, messages, prefs.web_search_enabled, prefs.streaming_enabled
            )
        )
        self.session.active_task = task
        return task

    def cancel(self) -> None:
        """Stop the current generation and return to idle. Safe to call at any time."""
        task = self.session.active_task
        self.session.active_task = None
        if task is not None and not task.done():
            logger.info("Cancelling generation")
            task.cancel()
        if self._streaming_turn_id is not None:
            self.session.remove_turn(self._streaming_turn_id)
            self._streaming_turn_id = None
        self.store.set(
            is_loading=False,
            is_searching=False,
            search_query=None,
            phase=ChatPhase.CANCELLED if task is not None else self.state.phase,
            progress=ProgressLabel.IDLE,
        )

    # --- Generation ---

    async def _generate(
        self, model: str, messages: list[ChatMessage], web_search: bool, stream: bool
    ) -> None:
        try:
            await self._converse(model, messages, web_search, stream)
        except asyncio.CancelledError:
            logger.info("Generation cancelled")
            raise
        except OllamaServerError as e:
            logger.warning("Ollama returned an error (status %d): %s", e.status, e.body)
            self._fail(str(e))
        except httpx.HTTPError as e:
            logger.warning("Ollama request failed: %s", e)
            self._fail(IslandResponse.CONNECTION_ERROR.format(error=e))
        except Exception as e:
            logger.exception("Unexpected error during generation")
            self._fail(str(e))
        finally:
            if self.session.active_task is asyncio.current_task():
                self.session.active_task = None

    async def _converse(
        self, model: str, messages: list[ChatMessage], web_search: bool, stream: bool
    ) -> None:
        searches = 0
        while True:
            allow_search = web_search and searches < self.config.max_search_rounds
            step, messages = await self._run_round(
                model, messages, web_search, allow_search, stream
            )

            if isinstance(step, ToolCallDetected):
                searches += 1
                result = await self._search(step.query)
                messages = [*messages, *self.session.search_exchange(step, result)]
                self.store.set(phase=ChatPhase.SYNTHESIZING, progress=ProgressLabel.SYNTHESIZING)
                continue

            logger.info("Answer complete: %d chars after %d search(es)", len(step.text), searches)
            self.store.set(
                is_loading=False,
                is_searching=False,
                search_query=None,
                phase=ChatPhase.DONE,
                progress=ProgressLabel.IDLE,
            )
            return

    async def _run_round(
        self,
        model: str,
        messages: list[ChatMessage],
        web_search: bool,
        allow_search: bool,
        stream: bool,
    ) -> tuple[Done | ToolCallDetected, list[ChatMessage]]:
        """One generation request, retried once without tools if the model rejects them."""
        retried = False
        while True:
            request = self._build_request(model, messages, allow_search, stream)
            try:
                if stream:
                    step = await self._stream_round(request, allow_search)
                else:
                    step = await self._single_round(request, allow_search)
                return step, messages
            except ToolsUnsupportedError:
                if retried or request.tools is None:
                    raise
                retried = True
                logger.info("Model %s does not support tools, retrying without them", model)
                self.session.model_supports_tools = False
                messages = self.session.refresh_system_message(messages, web_search)

    def _build_request(
        self, model: str, messages: list[ChatMessage], allow_search: bool, stream: bool
    ) -> ChatRequest:
        supports_tools = self.session.model_supports_tools
        tools = [self.web_search_tool.to_ollama_tool()] if allow_search and supports_tools else None
        return ChatRequest(
            model=model,
            messages=messages,
            stream=stream,
            tools=tools,
            web_search=True if allow_search and not supports_tools else None,
        )

    async def _stream_round(
        self, request: ChatRequest, allow_search: bool
    ) -> Done | ToolCallDetected:
        assert self.ollama is not None
        placeholder = Turn(id=self.session.next_id(), role=MessageRole.ASSISTANT, content="")
        self.session.append_turn(placeholder)
        self._streaming_turn_id = placeholder.id
        detector = SearchDetector(enabled=allow_search)
        committed = False
        try:
            async with contextlib.aclosing(self.ollama.chat_stream(request)) as fragments:
                async for fragment in fragments:
                    if self.state.phase != ChatPhase.STREAMING_ANSWER:
                        self.store.set(phase=ChatPhase.STREAMING_ANSWER)

                    step = detector.feed(fragment)
                    if isinstance(step, ToolCallDetected):
                        logger.info("Search requested mid-stream: %s", step.query)
                        return step

                    acc = detector.response
                    self.session.replace_turn(
                        placeholder.model_copy(
                            update={"content": acc.text, "reasoning": acc.reasoning or None}
                        )
                    )

            committed = True
            return detector.finish()
        finally:
            if self._streaming_turn_id == placeholder.id:
                self._streaming_turn_id = None
            if not committed:
                self.session.remove_turn(placeholder.id)

    async def _single_round(
        self, request: ChatRequest, allow_search: bool
    ) -> Done | ToolCallDetected:
        assert self.ollama is not None
        fragment = await self.ollama.chat(request)

        if allow_search:
            detected = detect_search(fragment.text, fragment.reasoning, fragment.tool_calls)
            if detected is not None:
                logger.info("Search requested: %s", detected.query)
                return detected

        self.session.append_turn(
            Turn(
                id=self.session.next_id(),
                role=MessageRole.ASSISTANT,
                content=fragment.text,
                reasoning=fragment.reasoning or None,
            )
        )
        return Done(fragment.text, fragment.reasoning)

    async def _search(self, query: str) -> str:
        engine = self.state.preferences.selected_engine()
        self.store.set(
            phase=ChatPhase.SEARCHING,
            is_searching=True,
            search_query=query,
            progress=ProgressLabel.SEARCHING.format(query=query),
        )
        # A cancel lets the search finish in the background; its result is dropped
        result = await asyncio.shield(self.search_provider.search(query, engine))
        self.store.set(is_searching=False, progress=ProgressLabel.ANALYZING)
        return result

    def _fail(self, message: str | None) -> None:
        self.store.set(
            is_loading=False,
            is_searching=False,
            search_query=None,
            phase=ChatPhase.ERRORED,
            progress=ProgressLabel.IDLE,
        )
        self._show_error(message)

    # --- Banners ---

    def _show_error(self, message: str | None) -> None:
        if not message or not message.strip() or message == "null":
            message = IslandResponse.UNKNOWN_ERROR
        self.store.set(error=message)
        self._dismiss_later("error", self.config.error_banner_seconds)

    def _show_info(self, message: str) -> None:
        self.store.set(info=message)
        self._dismiss_later("info", self.config.info_banner_seconds)

    def _dismiss_later(self, banner: str, delay: float) -> None:
        previous = self._banner_tasks.pop(banner, None)
        if previous is not None:
            previous.cancel()

        async def _clear() -> None:
            await asyncio.sleep(delay)
            self.store.set(**{banner: None})
            self._banner_tasks.pop(banner, None)

        self._banner_tasks[banner] = asyncio.get_running_loop().create_task(_clear())

    def dismiss_error(self) -> None:
        self._dismiss_now("error")

    def dismiss_info(self) -> None:
        self._dismiss_now("info")

    def _dismiss_now(self, banner: str) -> None:
        task = self._banner_tasks.pop(banner, None)
        if task is not None:
            task.cancel()
        self.store.set(**{banner: None})

    # --- Lifecycle ---

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def aclose(self) -> None:
        """Cancel everything in flight and close HTTP clients."""
        task = self.session.active_task
        self.cancel()
        for pending in [task, *self._banner_tasks.values(), *self._background_tasks]:
            if pending is not None and not pending.done():
                pending.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await pending
        self._banner_tasks.clear()
        if self.ollama is not None:
            await self.ollama.close()
        await self.search_provider.close()
