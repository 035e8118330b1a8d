# src/chatrelay/cli.py
"""
Command-line interface for chatrelay.

Commands:
    chatrelay serve            Run the request gateway (uvicorn)
    chatrelay chat             Interactive terminal chat over the gateway
    chatrelay sessions         List stored chat sessions
    chatrelay clear-history    Delete every stored chat session

Inside `chat`, lines starting with '/' are commands (see CHAT_HELP); every
other line is submitted as a user turn.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import AppConfig, load_config
from .exceptions import ConfigError
from .logging_config import configure_logging, enable_console_logging, log_display
from .models import Message, Role, SessionSummary
from .sessions import HttpChatTransport, SessionManager, SessionStore
from .storage import create_persistence

logger = logging.getLogger(__name__)

CHAT_HELP = """Commands:
  /new              start a new session (created on your next message)
  /sessions         list sessions, most recent first
  /switch <n|id>    switch to session number n from /sessions, or by id
  /clear            delete all sessions
  /help             show this help
  /quit             leave"""

ROLE_LABELS = {Role.ASSISTANT: "assistant", Role.SYSTEM: "system"}


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================


def format_session_line(index: int, summary: SessionSummary, active_id: Optional[str]) -> str:
    marker = "*" if summary.id == active_id else " "
    updated = summary.last_update.strftime("%Y-%m-%d %H:%M")
    return f"{marker}{index:>3}. {summary.first_prompt}  ({summary.message_count} msgs, {updated}) [{summary.id[:8]}]"


def format_message(message: Message, username: str) -> str:
    label = username if message.role == Role.USER else ROLE_LABELS[message.role]
    hint = f" [{message.content_type.value}]" if message.content_type and message.role == Role.ASSISTANT else ""
    return f"{label}{hint}: {message.content}"


def print_sessions(summaries: List[SessionSummary], active_id: Optional[str] = None) -> None:
    if not summaries:
        print("No chat sessions stored.")
        return
    for index, summary in enumerate(summaries, start=1):
        print(format_session_line(index, summary, active_id))


# =============================================================================
# COMMANDS
# =============================================================================


def resolve_session_ref(ref: str, summaries: List[SessionSummary]) -> Optional[str]:
    """Maps a 1-based list index or a (prefix of a) session id to a session id."""
    if ref.isdigit():
        index = int(ref)
        if 1 <= index <= len(summaries):
            return summaries[index - 1].id
        return None
    matches = [s.id for s in summaries if s.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else ref


async def handle_chat_command(manager: SessionManager, line: str) -> bool:
    """Runs one slash command. Returns False when the REPL should exit."""
    command, _, argument = line.partition(" ")
    argument = argument.strip()

    if command in ("/quit", "/exit"):
        return False
    if command == "/help":
        print(CHAT_HELP)
    elif command == "/new":
        manager.start_new_session()
        print("Started a new session.")
    elif command == "/sessions":
        print_sessions(manager.sessions, manager.active_session_id)
    elif command == "/switch":
        if not argument:
            print("Usage: /switch <n|id>")
            return True
        session_id = resolve_session_ref(argument, manager.sessions)
        if session_id is not None and manager.switch_session(session_id):
            for message in manager.messages:
                print(format_message(message, manager.display_username))
        else:
            print(f"No session matches '{argument}'.")
    elif command == "/clear":
        await manager.clear_all()
        print("All chat history cleared.")
    else:
        print(f"Unknown command '{command}'. Type /help for commands.")
    return True


async def run_chat(config: AppConfig) -> int:
    persistence = create_persistence(config.storage)
    transport = HttpChatTransport(config.client.gateway_url, timeout=config.client.request_timeout)
    manager = SessionManager(persistence, transport, display_username=config.client.display_username)
    await manager.initialize()

    username = manager.display_username
    print(f"Connected to {config.client.gateway_url} as {username}. Type /help for commands.")
    if manager.active_session_id:
        print(f"Resuming session {manager.active_session_id[:8]}.")
        for message in manager.messages:
            print(format_message(message, username))

    try:
        while True:
            try:
                line = await asyncio.to_thread(input, f"{username}> ")
            except EOFError:
                print()
                break
            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                if not await handle_chat_command(manager, line):
                    break
                continue

            print("...", flush=True)
            session_id = await manager.submit(line)
            if session_id is not None:
                reply = manager.store.get_messages(session_id)[-1]
                print(format_message(reply, username))
    except KeyboardInterrupt:
        print()
    finally:
        await manager.flush()
        await transport.aclose()
    return 0


async def run_list_sessions(config: AppConfig) -> int:
    result = await create_persistence(config.storage).load()
    store = SessionStore(result.sessions, history_limit=config.storage.history_limit)
    print_sessions(store.list_sessions(), result.active_session_id)
    return 0


async def run_clear_history(config: AppConfig) -> int:
    cleared = await create_persistence(config.storage).clear()
    print("All chat history cleared." if cleared else "Failed to clear chat history; see log.")
    return 0 if cleared else 1


def run_serve(config: AppConfig, host: Optional[str], port: Optional[int]) -> int:
    import uvicorn

    from .api_server.main import create_app

    host = host or config.gateway.host
    port = port or config.gateway.port
    log_display(logger, logging.INFO, "Gateway listening on http://%s:%d/chat", host, port)
    uvicorn.run(create_app(config), host=host, port=port, log_config=None)
    return 0


# =============================================================================
# ENTRY POINT
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chatrelay", description="Multi-session chat client and completion gateway.")
    parser.add_argument("--config", metavar="PATH", help="TOML config file (default: ~/.config/chatrelay/config.toml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show log output on the console")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the request gateway")
    serve.add_argument("--host", help="Bind address (default: gateway.host)")
    serve.add_argument("--port", type=int, help="Port (default: gateway.port)")

    subparsers.add_parser("chat", help="Interactive chat in the terminal")
    subparsers.add_parser("sessions", help="List stored chat sessions")
    subparsers.add_parser("clear-history", help="Delete every stored chat session")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(config_file_path=args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(app_name=f"chatrelay-{args.command}", config=config.logging)
    if args.verbose:
        enable_console_logging("DEBUG")

    if args.command == "serve":
        return run_serve(config, args.host, args.port)
    if args.command == "chat":
        return asyncio.run(run_chat(config))
    if args.command == "sessions":
        return asyncio.run(run_list_sessions(config))
    if args.command == "clear-history":
        return asyncio.run(run_clear_history(config))
    return 1


if __name__ == "__main__":
    sys.exit(main())
