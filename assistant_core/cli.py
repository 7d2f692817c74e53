"""控制台入口。

用法::

    python -m assistant_core "帮我看看测试为什么失败" -m chat -p openai --state

交互命令：exit / quit 退出，list tools 列出工具，load <id> 载入历史会话，其余内容作为提问。
"""

import argparse
import json
import os
import sys
from dataclasses import dataclass
from typing import List, Optional

from assistant_core.agents.assistant import AssistantConfig, AssistantEngine, AssistantEvent, transcript
from assistant_core.config.settings import settings
from assistant_core.domain.conversation import Conversation
from assistant_core.domain.exceptions import BusinessError, ValidationError
from assistant_core.domain.models import ChatMessage
from assistant_core.infrastructure.logging.logger import logger, set_level
from assistant_core.infrastructure.storage.json_store import JsonConversationStore
from assistant_core.prompts import build_system_message, load_system_prompt
from assistant_core.providers import create_provider
from assistant_core.providers.registry import PROVIDER_REGISTRY
from assistant_core.tools.definitions import ToolCall
from assistant_core.tools.executor import ToolExecutor, build_default_registry


COLORS = os.environ.get("ASSISTANT_COLORS", "1") == "1"


class C:
    R = "\033[31m" if COLORS else ""
    G = "\033[32m" if COLORS else ""
    Y = "\033[33m" if COLORS else ""
    M = "\033[35m" if COLORS else ""
    DIM = "\033[2m" if COLORS else ""
    RST = "\033[0m" if COLORS else ""


def print_colorful(text: str, color: str = "", end: str = "\n") -> None:
    sys.stdout.write(f"{color}{text}{C.RST if color else ''}{end}")
    sys.stdout.flush()


@dataclass
class Command:
    kind: str  # exit | list_tools | load | prompt
    value: Optional[str] = None


def parse_command(user_input: str) -> Command:
    text = user_input.strip()
    lowered = text.lower()
    if lowered in ("exit", "quit"):
        return Command("exit")
    if lowered == "list tools":
        return Command("list_tools")
    if lowered == "load" or lowered.startswith("load "):
        parts = text.split(None, 1)
        if len(parts) != 2:
            raise ValidationError(code="INVALID_COMMAND", message="Invalid load command, usage: load <conversation id>")
        return Command("load", parts[1].strip())
    return Command("prompt", text)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="assistant_core",
        description="Console interface for an AI-powered assistant",
    )
    parser.add_argument("initial_prompt", help="Sets the initial prompt for the assistant")
    parser.add_argument("-m", "--model", default=settings.default_model, help="Logical model name or provider model id")
    parser.add_argument("-p", "--provider", default=settings.default_provider, choices=sorted(PROVIDER_REGISTRY))
    parser.add_argument(
        "-l",
        "--log-level",
        default="INFO",
        choices=["INFO", "DEBUG", "WARN", "ERROR"],
        help="Sets the log level",
    )
    parser.add_argument(
        "-s",
        "--state",
        action="store_true",
        help="Appends the project snapshot file to the initial system prompt",
    )
    parser.add_argument("-y", "--yes", action="store_true", help="Run tool calls without asking for approval")
    return parser.parse_args(argv)


def request_approval(call: ToolCall) -> bool:
    print_colorful(f"Tool call: {call.name} {json.dumps(call.arguments, ensure_ascii=False)}", C.Y)
    try:
        answer = input("Approve? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def print_event(event: AssistantEvent) -> None:
    if event.kind == "tool_result" and event.result is not None and event.call is not None:
        color = C.M if event.result.success else C.R
        print_colorful(f"{event.call.name} =>\n{event.result.content}", color)


def initial_conversation(store: JsonConversationStore, system_message: str) -> Conversation:
    conversation = store.create()
    conversation.append(ChatMessage(role="system", content=system_message))
    return conversation


def read_state() -> Optional[str]:
    path = settings.workspace_path / settings.snapshot_output
    if not path.exists():
        logger.warning(f"{path} not found, continuing without state (run snap_tool to generate it)")
        return None
    return path.read_text(encoding="utf-8")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    set_level(args.log_level)
    logger.info("Logger initialized")

    run_settings = settings.model_copy(update={"default_model": args.model})
    provider = create_provider(args.provider)
    registry = build_default_registry(run_settings, provider=provider)
    store = JsonConversationStore(root=settings.storage_root)
    engine = AssistantEngine(
        provider_client=provider,
        tool_executor=ToolExecutor(registry, approve=None if args.yes else request_approval),
        config=AssistantConfig(
            provider=provider.name,
            model=args.model,
            max_tool_rounds=settings.max_tool_rounds,
        ),
        store=store,
        listener=print_event,
    )

    system_message = build_system_message(
        load_system_prompt(settings.system_prompt_file),
        registry.describe(),
        state=read_state() if args.state else None,
    )
    conversation = initial_conversation(store, system_message)
    print_colorful(f"Conversation {conversation.id}", C.DIM)

    prompt: Optional[str] = args.initial_prompt
    while True:
        if prompt is not None:
            try:
                reply = engine.run_turn(conversation, prompt)
                print_colorful(f"Assistant: {reply.content}", C.G)
            except BusinessError as exc:
                logger.error(f"Turn failed: [{exc.code}] {exc.message}")
                print_colorful(f"Error [{exc.code}]: {exc.message}", C.R)
            prompt = None

        usage = engine.last_usage.total_tokens if engine.last_usage else 0
        try:
            user_input = input(f"[{usage}] User: ")
        except (EOFError, KeyboardInterrupt):
            print()
            return 0

        try:
            command = parse_command(user_input)
        except ValidationError as exc:
            logger.warning(f"Failed to parse user command: {exc.message}")
            print_colorful(exc.message, C.R)
            continue

        if command.kind == "exit":
            return 0
        if command.kind == "list_tools":
            print_colorful(registry.describe(), C.G)
        elif command.kind == "load":
            try:
                conversation = store.load(command.value or "")
            except BusinessError as exc:
                print_colorful(f"Error [{exc.code}]: {exc.message}", C.R)
                continue
            print_colorful(f"Successfully loaded conversation {conversation.id}", C.M)
            for line in transcript(conversation)[-10:]:
                print_colorful(line, C.DIM)
        elif command.value:
            prompt = command.value


if __name__ == "__main__":
    sys.exit(main())
