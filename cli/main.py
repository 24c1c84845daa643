"""CLI entry point and argument parsing"""

import argparse
import asyncio
import logging
import sys

import httpx
from rich.console import Console

import settings
from chat import QwenClient
from exceptions import QwenClientError
from providers import PROVIDERS, get_provider
from qwen_oauth import TokenStorage
from utils.http import stream_timeout
from cli.auth_handlers import DeviceLoginFlow, build_token_manager, explain_error, install_session_token
from cli.chat_repl import run_repl, stream_reply
from cli.debug_setup import configure_logging
from cli.status_display import show_token_status

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="qwen-chat", description="Qwen chat client")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging to qwen_chat_debug.log")
    parser.add_argument(
        "--profile", "-p",
        choices=sorted(PROVIDERS),
        default=settings.QWEN_PROFILE,
        help="Service variant (default: from config, 'portal')"
    )
    parser.add_argument("--model", "-m", default=None, help="Model name (default: profile default)")
    parser.add_argument(
        "--token",
        default=None,
        help="Web profile session token, bare or as a cookie string (default: QWEN_WEB_TOKEN)"
    )
    parser.add_argument("--token-file", default=None, help="Token file (default: from config)")
    parser.add_argument(
        "--stream-trace",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Write raw response streams to STREAM_TRACE_DIR (implied by --debug unless explicitly disabled)"
    )

    subparsers = parser.add_subparsers(dest="command")

    login = subparsers.add_parser("login", help="Authorize this device")
    login.add_argument("--no-browser", action="store_true", help="Don't open the verification URL")

    chat = subparsers.add_parser("chat", help="Interactive chat (default)")
    chat.add_argument("--thinking", action="store_true", help="Request thinking mode")

    ask = subparsers.add_parser("ask", help="Send one prompt and print the answer")
    ask.add_argument("prompt", nargs="+", help="Prompt text")
    ask.add_argument("--thinking", action="store_true", help="Request thinking mode")

    subparsers.add_parser("status", help="Show stored token status")
    subparsers.add_parser("logout", help="Delete stored tokens")

    return parser


async def run_client_command(args, console: Console, storage: TokenStorage, stream_trace_enabled: bool) -> int:
    """Run a command that talks to the service"""
    async with httpx.AsyncClient(timeout=stream_timeout()) as http_client:
        provider = get_provider(args.profile)
        client = QwenClient(
            provider,
            token_manager=build_token_manager(provider, storage, http_client),
            http_client=http_client,
            model=args.model or settings.QWEN_MODEL or None,
            stream_trace_enabled=stream_trace_enabled,
        )

        web_token = args.token or (settings.QWEN_WEB_TOKEN if provider.name == "web" else "")
        if web_token and not install_session_token(client, web_token):
            console.print("[red]ERROR:[/red] No token found in the given cookie string")
            return 1

        if args.command == "login":
            if client.device_flow is None:
                if not web_token:
                    console.print(f"[red]ERROR:[/red] The {provider.name} profile has no device login")
                    console.print("Pass the chat.qwen.ai session cookie with --token or set QWEN_WEB_TOKEN")
                    return 1
                console.print(f"[green]✓ Session token saved to {storage.token_file}[/green]")
                return 0

            flow = DeviceLoginFlow(client, console, open_browser=not args.no_browser)
            ok = await flow.authenticate(max_attempts=settings.POLL_MAX_ATTEMPTS or None)
            return 0 if ok else 1

        if args.command == "ask":
            await stream_reply(client, " ".join(args.prompt), console, thinking=args.thinking)
            return 0

        await run_repl(client, console, thinking=getattr(args, "thinking", False))
        return 0


def main(argv=None) -> int:
    """Entry point for the CLI"""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "chat"

    console = configure_logging(args.debug)

    # Determine stream tracing preference (config default -> CLI overrides)
    stream_trace_enabled = settings.STREAM_TRACE_ENABLED
    if args.stream_trace is None:
        if args.debug:
            stream_trace_enabled = True
    else:
        stream_trace_enabled = args.stream_trace

    storage = TokenStorage(args.token_file)

    try:
        if args.command == "status":
            show_token_status(storage, console)
            return 0

        if args.command == "logout":
            if storage.clear_tokens():
                console.print("[green]✓ Tokens cleared[/green]")
                return 0
            console.print("[red]ERROR:[/red] Failed to clear tokens")
            return 1

        return asyncio.run(run_client_command(args, console, storage, stream_trace_enabled))

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    except QwenClientError as e:
        message, hint = explain_error(e)
        console.print(f"\n[red]ERROR:[/red] {message}")
        if hint:
            console.print(f"[dim]{hint}[/dim]")
        return 1
    except httpx.HTTPError as e:
        logger.debug(f"Transport failure: {e!r}")
        console.print(f"\n[red]Network error:[/red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
