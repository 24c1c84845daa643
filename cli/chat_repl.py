"""Line-oriented chat REPL"""

import logging
from typing import List

from rich.console import Console

from chat import QwenClient
from exceptions import ChatRequestFailed, QwenClientError, TokenRefreshFailed, Unauthenticated
from streaming import TextDelta, ToolCallDelta, accumulate_tool_calls
from cli.auth_handlers import explain_error

logger = logging.getLogger(__name__)

QUIT_COMMANDS = ("q", "quit", "exit")
NEW_THREAD_COMMAND = "new"


async def stream_reply(client: QwenClient, content: str, console: Console, thinking: bool = False) -> str:
    """
    Send one turn and print the answer as it streams in

    Tool calls are printed once they are complete.

    Returns:
        The full text of the answer
    """
    parts: List[str] = []
    tool_deltas: List[ToolCallDelta] = []

    async for output in client.send(content, thinking=thinking):
        if isinstance(output, TextDelta):
            parts.append(output.content)
            console.print(output.content, end="", markup=False, highlight=False, soft_wrap=True)
        elif isinstance(output, ToolCallDelta):
            tool_deltas.append(output)

    console.print()

    for call in accumulate_tool_calls(tool_deltas):
        console.print(f"[magenta]Tool call[/magenta] {call.name}({call.arguments})", highlight=False)

    return "".join(parts)


async def run_repl(client: QwenClient, console: Console, thinking: bool = False) -> None:
    """Read prompts until 'q'; 'new' starts a fresh thread"""
    console.print(f"[bold]Qwen chat[/bold] [dim]({client.provider.name} / {client.model})[/dim]")
    console.print(f"[dim]Type '{NEW_THREAD_COMMAND}' for a new thread, 'q' to quit[/dim]\n")

    while True:
        try:
            line = console.input("[bold cyan]you>[/bold cyan] ")
        except (EOFError, KeyboardInterrupt):
            console.print()
            break

        text = line.strip()
        if not text:
            continue
        if text.lower() in QUIT_COMMANDS:
            break
        if text.lower() == NEW_THREAD_COMMAND:
            client.new_thread()
            console.print("[dim]Started a new thread[/dim]")
            continue

        console.print("[bold green]qwen>[/bold green] ", end="")
        try:
            await stream_reply(client, text, console, thinking=thinking)
        except (Unauthenticated, TokenRefreshFailed):
            # Nothing the next prompt could fix
            raise
        except ChatRequestFailed as e:
            if e.is_unauthorized:
                raise
            _print_error(console, e)
        except QwenClientError as e:
            _print_error(console, e)

    console.print("Goodbye!")


def _print_error(console: Console, error: QwenClientError) -> None:
    message, hint = explain_error(error)
    console.print(f"\n[red]ERROR:[/red] {message}")
    if hint:
        console.print(f"[dim]{hint}[/dim]")
