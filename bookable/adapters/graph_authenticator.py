"""
Sign-in to Microsoft Graph for reading the business calendar.

Uses the MSAL device code flow, which suits a terminal: the calendar owner
opens a URL, types a short code and grants read access once. Later runs
reuse the cached refresh token silently.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import keyring
import msal
from keyring.errors import KeyringError, PasswordDeleteError
from rich.console import Console

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

console = Console()

KEYRING_SERVICE_NAME = "bookable"
SCOPES = ["Calendars.Read", "Calendars.Read.Shared"]
DEFAULT_CACHE_FILE = Path.home() / ".bookable_token_cache.json"


class TokenCacheStore:
    """
    Where the serialized MSAL token cache lives between runs.

    The system keyring is tried first. Once it fails, the store switches to
    a file readable only by the current user for the rest of the process.
    """

    def __init__(self, key: str, cache_file: Path):
        self.key = key
        self.cache_file = cache_file
        self.backend = "keyring"

    def _use_file(self, action: str, exc: KeyringError) -> None:
        if self.backend == "keyring":
            logger.warning("Keyring %s failed (%s); caching tokens in %s", action, exc, self.cache_file)
        self.backend = "file"

    def load(self) -> Optional[str]:
        if self.backend == "keyring":
            try:
                serialized = keyring.get_password(KEYRING_SERVICE_NAME, self.key)
            except KeyringError as exc:
                self._use_file("read", exc)
            else:
                if serialized is not None:
                    return serialized

        if not self.cache_file.exists():
            return None
        try:
            return self.cache_file.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not read token cache %s: %s", self.cache_file, exc)
            return None

    def save(self, serialized: str) -> None:
        if self.backend == "keyring":
            try:
                keyring.set_password(KEYRING_SERVICE_NAME, self.key, serialized)
                return
            except KeyringError as exc:
                self._use_file("write", exc)

        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(serialized, encoding="utf-8")
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not write token cache %s: %s", self.cache_file, exc)

    def clear(self) -> None:
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self.key)
        except PasswordDeleteError:
            logger.debug("No keyring entry to remove for %s", self.key)
        except KeyringError as exc:
            logger.warning("Could not remove credentials from keyring: %s", exc)


class GraphAuthenticator:
    """Hands out access tokens for the account that owns the business calendar."""

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        authority_url: str | None = None,
        cache_file: Path | None = None,
    ):
        """
        Args:
            client_id: Azure AD application (client) ID
            tenant_id: Azure AD tenant ID
            authority_url: Optional custom authority URL
            cache_file: Token cache file used when the keyring is unavailable

        Raises:
            AuthenticationError: If no client ID is configured
        """
        if not client_id:
            raise AuthenticationError("graph.client_id is not configured")

        self.store = TokenCacheStore(f"{client_id}:{tenant_id}", cache_file or DEFAULT_CACHE_FILE)
        self.cache = msal.SerializableTokenCache()

        serialized = self.store.load()
        if serialized:
            try:
                self.cache.deserialize(serialized)
            except ValueError as exc:
                logger.warning("Ignoring unreadable token cache: %s", exc)

        self.app = msal.PublicClientApplication(
            client_id=client_id,
            authority=authority_url or f"https://login.microsoftonline.com/{tenant_id}",
            token_cache=self.cache,
        )

    @property
    def cache_backend(self) -> str:
        return self.store.backend

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        """Set when tokens are kept in a plaintext file."""
        if self.store.backend != "file":
            return None
        return f"Secure credential storage unavailable; tokens are cached in plaintext at {self.store.cache_file}."

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, signing in only when the cache cannot help.

        Raises:
            AuthenticationError: If the device code flow fails
        """
        result = None
        if not force_refresh:
            accounts = self.app.get_accounts()
            if accounts:
                result = self.app.acquire_token_silent(SCOPES, account=accounts[0])

        if not result or "access_token" not in result:
            result = self._sign_in()

        if self.cache.has_state_changed:
            self.store.save(self.cache.serialize())
        return result["access_token"]

    def _sign_in(self) -> dict:
        flow = self.app.initiate_device_flow(scopes=SCOPES)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Failed to start sign-in: {flow.get('error_description', 'Unknown error')}"
            )

        console.print("\n[bold cyan]Microsoft sign-in required[/bold cyan]")
        console.print(f"Open [bold cyan]{flow['verification_uri']}[/bold cyan] and enter "
                      f"[bold yellow]{flow['user_code']}[/bold yellow] with the calendar owner's account.")
        console.print("[dim]Waiting for authentication...[/dim]\n")

        result = self.app.acquire_token_by_device_flow(flow)
        if "access_token" not in result:
            raise AuthenticationError(f"Authentication failed: {result.get('error_description', 'Unknown error')}")

        console.print("[bold green]✓ Signed in[/bold green]\n")
        return result

    def clear_cache(self) -> None:
        """Forget cached tokens so the next run signs in again."""
        self.store.clear()
        self.cache = msal.SerializableTokenCache()
