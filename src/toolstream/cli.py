"""Line-mode terminal client.

Reads user lines, runs one turn at a time in a background task and prints
display events as the turn publishes them.
"""

import argparse
import asyncio
import logging
import sys

from toolstream.builtin_tools import default_gateway
from toolstream.config import Settings
from toolstream.errors import ConfigError
from toolstream.events import ContentEvent, MessageEvent, StatusEvent, StreamEvent
from toolstream.history import ConversationHistory
from toolstream.orchestrator import TurnOrchestrator
from toolstream.provider import OpenWebUIProvider
from toolstream.state import ConversationState

logger = logging.getLogger(__name__)

PROMPT = "> "
QUIT_COMMANDS = ("/quit", "/exit")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolstream",
        description="Chat with a streaming completion backend that can call tools.",
    )
    parser.add_argument("--model", help="Model name (env: TOOLSTREAM_MODEL)")
    parser.add_argument("--base-url", help="Backend URL (env: OPEN_WEBUI_BASE_URL)")
    parser.add_argument(
        "--max-rounds", type=int,
        help="Maximum completion rounds per turn (env: TOOLSTREAM_MAX_ROUNDS)",
    )
    parser.add_argument(
        "--no-tools", action="store_true",
        help="Do not declare or execute any tools",
    )
    parser.add_argument(
        "--log-file", default="toolstream.log",
        help="Where to write logs (default: %(default)s)",
    )
    return parser


class Renderer:
    """Writes display events to a text stream."""

    def __init__(self, out=None):
        self.out = out or sys.stdout
        self._streamed = False

    def render(self, event: StreamEvent) -> None:
        if isinstance(event, ContentEvent):
            self.out.write(event.text)
            self._streamed = True
        elif isinstance(event, MessageEvent):
            self._render_message(event)
        elif isinstance(event, StatusEvent):
            if event.status:
                self.out.write(f"({event.status})\n")
            else:
                self.out.write(PROMPT)
        self.out.flush()

    def _render_message(self, event: MessageEvent) -> None:
        if event.role == "assistant":
            if self._streamed:
                self.out.write("\n")
            elif event.content:
                self.out.write(f"{event.content}\n")
            if event.tool_calls:
                self.out.write(f"[tools: {', '.join(event.tool_calls)}]\n")
            self._streamed = False
        elif event.role in ("tool", "system"):
            if self._streamed:
                self.out.write("\n")
                self._streamed = False
            self.out.write(f"{event.content}\n")


async def _render_events(state: ConversationState, renderer: Renderer) -> None:
    async for event in state.events():
        renderer.render(event)


def _read_line() -> str | None:
    try:
        return input()
    except EOFError:
        return None


async def run(settings: Settings, use_tools: bool = True) -> None:
    provider = OpenWebUIProvider(base_url=settings.base_url, api_key=settings.api_key)
    gateway = default_gateway() if use_tools else None
    state = ConversationState(ConversationHistory(system_prompt=settings.system_prompt))
    orchestrator = TurnOrchestrator(
        provider=provider,
        gateway=gateway,
        state=state,
        model=settings.model,
        max_rounds=settings.max_rounds,
    )
    state.subscribe()
    renderer = Renderer()
    render_task = asyncio.create_task(_render_events(state, renderer))
    turn: asyncio.Task | None = None

    sys.stdout.write(PROMPT)
    sys.stdout.flush()
    try:
        while True:
            line = await asyncio.to_thread(_read_line)
            if line is None or line.strip() in QUIT_COMMANDS:
                break
            if not line.strip():
                continue
            if turn is not None and not turn.done():
                sys.stdout.write("(busy, wait for the current answer)\n")
                continue
            turn = orchestrator.start_turn(line)
    finally:
        if turn is not None and not turn.done():
            turn.cancel()
            await asyncio.gather(turn, return_exceptions=True)
        render_task.cancel()
        await asyncio.gather(render_task, return_exceptions=True)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = Settings.from_env(
            model=args.model,
            base_url=args.base_url,
            max_rounds=args.max_rounds,
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s:%(name)s:%(levelname)s:%(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[logging.FileHandler(args.log_file)],
    )
    logger.info(f"Starting toolstream against {settings.base_url} with {settings.model}")

    try:
        asyncio.run(run(settings, use_tools=not args.no_tools))
    except KeyboardInterrupt:
        pass
    return 0
