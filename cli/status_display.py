"""Status display functionality for CLI"""

from rich.table import Table

from qwen_oauth import TokenStorage


def show_token_status(storage: TokenStorage, console):
    """
    Display detailed token status

    Args:
        storage: TokenStorage instance
        console: Rich console for output
    """
    status = storage.get_status()

    table = Table(title="Token Status Details")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Has Tokens", "Yes" if status["has_tokens"] else "No")
    if status["has_tokens"]:
        table.add_row("Profile", status["profile"])
        table.add_row("Is Expired", "Yes" if status["is_expired"] else "No")
        table.add_row("Can Refresh", "Yes" if status["can_refresh"] else "No")
        table.add_row("Expires At", status["expires_at"])
        table.add_row("Time Until Expiry", status["time_until_expiry"])

    table.add_row("Token File", str(storage.token_file))

    console.print(table)

    state, detail = get_auth_status(storage)
    color = {"VALID": "green", "EXPIRED": "yellow"}.get(state, "red")
    console.print(f"[{color}]{state}[/{color}] {detail}")


def get_auth_status(storage: TokenStorage) -> tuple[str, str]:
    """
    Get authentication status and expiry info

    Args:
        storage: TokenStorage instance

    Returns:
        Tuple of (status, detail_message)
    """
    status = storage.get_status()

    if not status["has_tokens"]:
        return "NO AUTH", "No tokens available"

    if status["is_expired"]:
        if status["can_refresh"]:
            return "EXPIRED", "Token expired, will refresh on next request"
        return "EXPIRED", "Token expired, login required"

    return "VALID", f"Expires in {status['time_until_expiry']}"
