"""Terminal front end for islandchat."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import sys

from islandchat.chat.models import ChatState
from islandchat.chat.orchestrator import ChatOrchestrator
from islandchat.config import Config, setup_logging
from islandchat.constants import ChatPhase, MessageRole

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Commands: /models, /model <name>, /search on|off, /stream on|off, "
    "/engines, /engine <id>, /action <label>, /cancel, /clear, /quit"
)


class TerminalView:
    """Prints state snapshots as they change."""

    def __init__(self) -> None:
        self._printed: dict[int, int] = {}
        self._progress: str | None = None
        self._error: str | None = None
        self._info: str | None = None
        self._was_loading = False

    def render(self, state: ChatState) -> None:
        if state.info and state.info != self._info:
            print(f"\n[info] {state.info}")
        self._info = state.info
        if state.error and state.error != self._error:
            print(f"\n[error] {state.error}")
        self._error = state.error

        if state.phase in (ChatPhase.SEARCHING, ChatPhase.SYNTHESIZING):
            if state.progress != self._progress:
                print(f"\n[{state.progress}]")
        self._progress = state.progress

        for turn in state.turns:
            if turn.role != MessageRole.ASSISTANT:
                continue
            text = turn.content or ""
            shown = self._printed.get(turn.id, 0)
            if len(text) > shown:
                print(text[shown:], end="", flush=True)
                self._printed[turn.id] = len(text)

        if self._was_loading and not state.is_loading:
            print()
        self._was_loading = state.is_loading


def _on_off(value: str) -> bool | None:
    return {"on": True, "off": False}.get(value.strip().lower())


async def handle_command(chat: ChatOrchestrator, line: str) -> bool:
    """Run one slash command. Returns False when the user wants to quit."""
    name, _, arg = line.partition(" ")
    prefs = chat.state.preferences

    if name == "/quit":
        return False
    if name == "/cancel":
        chat.cancel()
    elif name == "/clear":
        chat.clear_messages()
    elif name == "/models":
        await chat.refresh_models()
        for model in chat.state.available_models:
            marker = "*" if model == prefs.selected_model else " "
            print(f" {marker} {model}")
    elif name == "/model" and arg:
        chat.select_model(arg.strip())
    elif name == "/search" and _on_off(arg) is not None:
        chat.toggle_web_search(bool(_on_off(arg)))
    elif name == "/stream" and _on_off(arg) is not None:
        chat.toggle_streaming(bool(_on_off(arg)))
    elif name == "/engines":
        for engine in prefs.search_engines:
            marker = "*" if engine.id == prefs.selected_search_engine_id else " "
            print(f" {marker} {engine.id}  {engine.name} ({engine.type})")
    elif name == "/engine" and arg:
        chat.select_search_engine(arg.strip())
    elif name == "/action" and arg:
        action = next(
            (a for a in chat.state.quick_actions if a.label.lower() == arg.strip().lower()), None
        )
        if action is not None:
            chat.perform_quick_action(action)
    else:
        print(HELP_TEXT)
    return True


def stdin_lines(
    loop: asyncio.AbstractEventLoop, fd: int | None = None
) -> asyncio.Queue[str | None]:
    """
    Feed input lines into a queue without blocking the event loop.

    Reads ``fd`` (stdin by default). ``None`` marks end of input (EOF or a request
    to quit).
    """
    lines: asyncio.Queue[str | None] = asyncio.Queue()
    fd = sys.stdin.fileno() if fd is None else fd
    pending = bytearray()

    def _read() -> None:
        chunk = os.read(fd, 4096)
        if not chunk:
            loop.remove_reader(fd)
            if pending:
                lines.put_nowait(pending.decode(errors="replace"))
                pending.clear()
            lines.put_nowait(None)
            return
        pending.extend(chunk)
        while (end := pending.find(b"\n")) != -1:
            lines.put_nowait(pending[:end].decode(errors="replace"))
            del pending[: end + 1]

    loop.add_reader(fd, _read)
    return lines


def handle_interrupt(chat: ChatOrchestrator, lines: asyncio.Queue[str | None]) -> None:
    """Ctrl-C stops the running answer; when idle it ends the session."""
    if chat.state.is_loading:
        chat.cancel()
        print("\n[cancelled]")
    else:
        lines.put_nowait(None)


async def run_repl(config: Config) -> None:
    chat = ChatOrchestrator(config)
    view = TerminalView()
    loop = asyncio.get_running_loop()
    lines = stdin_lines(loop)
    loop.add_signal_handler(signal.SIGINT, handle_interrupt, chat, lines)

    async def _watch() -> None:
        async for state in chat.store.subscribe():
            view.render(state)

    watcher = asyncio.create_task(_watch())
    try:
        await chat.start()
        print(HELP_TEXT)
        # Input keeps flowing while an answer streams, so /cancel and new
        # messages take effect mid-generation
        while (raw := await lines.get()) is not None:
            line = raw.strip()
            if not line:
                continue
            if line.startswith("/"):
                if not await handle_command(chat, line):
                    break
                continue
            chat.send(line)
    finally:
        loop.remove_signal_handler(signal.SIGINT)
        loop.remove_reader(sys.stdin.fileno())
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher
        await chat.aclose()


async def main() -> None:
    """Main entry point."""
    config = Config.load()
    setup_logging(config.log_level, config.log_file, config.log_max_bytes, config.log_backup_count)

    logger.info("Starting islandchat with config:")
    logger.info("  ollama_api_url: %s", config.ollama_api_url)
    logger.info("  ollama_model: %s", config.ollama_model)
    logger.info("  web_search_enabled: %s", config.web_search_enabled)
    logger.info("  streaming_enabled: %s", config.streaming_enabled)
    logger.info("  search_engine: %s", config.selected_search_engine)

    await run_repl(config)


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        sys.exit(0)


if __name__ == "__main__":
    run()
