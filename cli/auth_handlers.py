"""Authentication handlers for CLI"""

import logging
import webbrowser
from typing import Optional, Tuple

import httpx
from rich.console import Console

from chat import QwenClient
from exceptions import (
    AuthorizationDenied,
    AuthorizationProtocolError,
    AuthorizationTimeout,
    ChatRequestFailed,
    DeviceCodeExpired,
    DeviceCodeRequestFailed,
    NoResponseBody,
    QwenClientError,
    ThreadCreationFailed,
    TokenRefreshFailed,
    Unauthenticated,
    UnsupportedOperation,
)
from providers import BaseProvider, extract_token
from qwen_oauth import TokenLeaseManager, TokenStorage

logger = logging.getLogger(__name__)


def build_token_manager(
    provider: BaseProvider,
    storage: TokenStorage,
    http_client: Optional[httpx.AsyncClient] = None
) -> TokenLeaseManager:
    """
    Create a lease manager restored from and persisting to storage

    Args:
        provider: Active protocol profile
        storage: TokenStorage instance
        http_client: Client used for refresh calls

    Returns:
        TokenLeaseManager that saves every new lease under the profile's name
    """
    def persist(lease):
        storage.save_lease(lease, provider.name)

    return TokenLeaseManager(
        lease=storage.load_lease(provider.name),
        http_client=http_client,
        token_url=provider.token_url,
        on_lease_changed=persist,
    )


def install_session_token(client: QwenClient, value: str) -> bool:
    """
    Install a web session token given either bare or as a cookie header

    Args:
        client: Client to install the token into
        value: "abc..." or "token=abc...; other=..."

    Returns:
        True if a token was found
    """
    value = value.strip()
    token = extract_token(value) if "=" in value else value
    if not token:
        return False
    client.set_tokens(token)
    return True


def explain_error(error: QwenClientError) -> Tuple[str, str]:
    """
    Map a client error to a console message and a hint

    Returns:
        Tuple of (message, hint); hint may be empty
    """
    if isinstance(error, Unauthenticated):
        return str(error), "Run 'qwen-chat login' first"
    if isinstance(error, TokenRefreshFailed):
        return str(error), "The refresh token was rejected. Run 'qwen-chat login' again"
    if isinstance(error, ChatRequestFailed):
        if error.is_unauthorized:
            return f"Request unauthorized ({error.status})", "Your token is no longer accepted. Run 'qwen-chat login' again"
        if error.status == 429:
            return str(error), "Rate limited. Wait a moment and retry"
        return str(error), ""
    if isinstance(error, ThreadCreationFailed):
        return str(error), "Check that your web session token is still valid"
    if isinstance(error, AuthorizationDenied):
        return str(error), "Authorization was refused in the browser"
    if isinstance(error, DeviceCodeExpired):
        return str(error), "The code was not confirmed in time. Run 'qwen-chat login' again"
    if isinstance(error, AuthorizationTimeout):
        return str(error), "Raise POLL_MAX_ATTEMPTS or confirm the code sooner"
    if isinstance(error, UnsupportedOperation):
        return str(error), "Use the portal profile (--profile portal) for this"
    if isinstance(error, (DeviceCodeRequestFailed, AuthorizationProtocolError, NoResponseBody)):
        return str(error), "The service returned something unexpected. Retry with --debug for details"
    return str(error), ""


class DeviceLoginFlow:
    """Handle the device-code login in the terminal"""

    def __init__(self, client: QwenClient, console: Console, open_browser: bool = True):
        self.client = client
        self.console = console
        self.open_browser = open_browser

    async def authenticate(self, max_attempts: Optional[int] = None) -> bool:
        """Run the device authorization flow

        Args:
            max_attempts: Poll attempt cap (None polls until the server decides)

        Returns:
            True if a lease was obtained and installed
        """
        console = self.console

        console.print("\n[bold]Step 1:[/bold] Requesting a device code...")
        prompt = await self.client.login()
        logger.debug("Device code issued, waiting for user")

        console.print("\n[bold]Step 2:[/bold] Authorize this device in your browser")
        console.print(f"  URL:  [cyan]{prompt.verification_url}[/cyan]")
        if prompt.user_code:
            console.print(f"  Code: [bold yellow]{prompt.user_code}[/bold yellow]")

        if self.open_browser:
            if webbrowser.open(prompt.verification_url):
                console.print("[green][OK][/green] Browser opened successfully")
            else:
                console.print("[yellow]Could not open browser automatically, open the URL above manually[/yellow]")

        console.print("\n[bold]Step 3:[/bold] Waiting for authorization...")
        try:
            with console.status("Polling for authorization..."):
                lease = await self.client.wait_for_authorization(max_attempts=max_attempts)
        except (AuthorizationDenied, DeviceCodeExpired, AuthorizationTimeout) as e:
            message, hint = explain_error(e)
            console.print(f"[red]✗ {message}[/red]")
            if hint:
                console.print(f"[dim]{hint}[/dim]")
            return False
        except KeyboardInterrupt:
            self.client.device_flow.abandon()
            console.print("\n[yellow]Authentication cancelled by user[/yellow]")
            return False

        logger.info("Device authorization completed")
        console.print("[green]✓ Authentication successful![/green]")
        if lease.can_refresh:
            console.print("[dim]The token will be refreshed automatically when it expires[/dim]")
        return True
