# ABOUTME: OAuth token store for connected Xero tenants
# ABOUTME: Loads/saves token sets, resolves entities, refreshes expired access tokens

import asyncio
import json
import logging
import os
import subprocess
import time
from pathlib import Path

import httpx
from pydantic import BaseModel

from ledgerizer.exceptions import (
    CredentialsNotFoundError,
    EntityUnresolvableError,
    SessionExpiredError,
)
from ledgerizer.types import Entity

logger = logging.getLogger(__name__)

# Token storage location (written by the OAuth connect flow)
DEFAULT_TOKEN_FILE = Path.home() / ".ledgerizer" / "tokens.json"

TOKEN_URL = "https://identity.xero.com/connect/token"

# Refresh this many seconds before the access token actually expires
EXPIRY_MARGIN_SECONDS = 60


def token_file() -> Path:
    """Path of the token store, overridable with LEDGERIZER_TOKEN_FILE."""
    override = os.environ.get("LEDGERIZER_TOKEN_FILE")
    return Path(override).expanduser() if override else DEFAULT_TOKEN_FILE


def get_client_credentials_from_1password() -> tuple[str, str]:
    """Retrieve the Xero OAuth client id/secret from 1Password CLI."""
    try:
        client_id = subprocess.run(
            ["op", "read", "op://Private/ledgerizer-xero/username"],
            capture_output=True,
            text=True,
            check=True,
        ).stdout.strip()

        client_secret = subprocess.run(
            ["op", "read", "op://Private/ledgerizer-xero/credential"],
            capture_output=True,
            text=True,
            check=True,
        ).stdout.strip()

        return client_id, client_secret
    except subprocess.CalledProcessError as e:
        raise CredentialsNotFoundError(
            f"Failed to retrieve Xero client credentials from 1Password: {e.stderr}"
        ) from e
    except FileNotFoundError:
        raise CredentialsNotFoundError(
            "1Password CLI (op) not found. Install it or set XERO_CLIENT_ID/XERO_CLIENT_SECRET env vars."
        )


def get_client_credentials() -> tuple[str, str]:
    """Get the Xero OAuth client credentials from environment or 1Password."""
    client_id = os.environ.get("XERO_CLIENT_ID")
    client_secret = os.environ.get("XERO_CLIENT_SECRET")

    if client_id and client_secret:
        logger.debug("Using client credentials from environment variables")
        return client_id, client_secret

    logger.debug("Attempting to retrieve client credentials from 1Password")
    return get_client_credentials_from_1password()


class TokenSet(BaseModel):
    """OAuth tokens for one connected tenant."""

    tenant_id: str
    tenant_name: str
    access_token: str = ""
    refresh_token: str | None = None
    expires_at: float = 0.0

    def is_expired(self, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return current >= self.expires_at - EXPIRY_MARGIN_SECONDS

    def is_usable(self, now: float | None = None) -> bool:
        """Usable if the access token is live or can be refreshed."""
        return bool(self.refresh_token) or (
            bool(self.access_token) and not self.is_expired(now)
        )

    def to_entity(self) -> Entity:
        return Entity(
            entity_id=self.tenant_id,
            display_name=self.tenant_name,
            is_usable=self.is_usable(),
        )


def load_tokens(path: Path | None = None) -> list[TokenSet]:
    """Load saved token sets from disk, in file order."""
    path = path or token_file()
    if not path.exists():
        return []

    try:
        with open(path) as f:
            data = json.load(f)
        tokens = [TokenSet.model_validate(item) for item in data.get("tenants", [])]
        logger.debug(f"Loaded {len(tokens)} token sets from disk")
        return tokens
    except (json.JSONDecodeError, IOError, ValueError) as e:
        logger.warning(f"Failed to load token file: {e}")
        return []


def save_tokens(tokens: list[TokenSet], path: Path | None = None) -> None:
    """Save token sets to disk with restricted permissions."""
    path = path or token_file()
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        json.dump({"tenants": [t.model_dump() for t in tokens]}, f)

    path.chmod(0o600)
    logger.debug("Saved token sets to disk")


def clear_tokens(path: Path | None = None) -> None:
    """Remove saved token sets from disk."""
    path = path or token_file()
    if path.exists():
        path.unlink()
        logger.debug("Cleared token sets from disk")


class XeroTokenStore:
    """
    Credential resolver backed by the on-disk token store.

    Reads the store on every lookup so tenants connected or revoked by
    the OAuth layer are seen without a restart. Expired access tokens
    are refreshed on demand and written back.
    """

    def __init__(
        self,
        path: Path | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._path = path
        self._http_client = http_client
        self._refresh_locks: dict[str, asyncio.Lock] = {}

    async def list_entities(self) -> list[Entity]:
        return [token.to_entity() for token in load_tokens(self._path)]

    def _find(self, entity_id: str) -> TokenSet:
        for token in load_tokens(self._path):
            if token.tenant_id == entity_id:
                return token
        raise EntityUnresolvableError(
            f"Tenant {entity_id} not found or token expired", entity_id=entity_id
        )

    async def resolve(self, entity_id: str) -> Entity:
        token = self._find(entity_id)
        if not token.is_usable():
            raise EntityUnresolvableError(
                f"Tenant {token.tenant_name} is not currently connected (token expired)",
                entity_id=entity_id,
            )
        return token.to_entity()

    async def access_token(self, entity_id: str) -> str:
        """
        Get a live access token for a tenant, refreshing it if needed.

        Raises:
            EntityUnresolvableError: Tenant unknown or has no usable token
            SessionExpiredError: The refresh was rejected
        """
        token = self._find(entity_id)
        if token.access_token and not token.is_expired():
            return token.access_token

        # One refresh per tenant at a time; refresh tokens are single-use
        lock = self._refresh_locks.setdefault(entity_id, asyncio.Lock())
        async with lock:
            token = self._find(entity_id)
            if token.access_token and not token.is_expired():
                return token.access_token
            if not token.refresh_token:
                raise EntityUnresolvableError(
                    f"Tenant {token.tenant_name} is not currently connected (token expired)",
                    entity_id=entity_id,
                )

            refreshed = await self._refresh(token)
            tokens = [
                refreshed if t.tenant_id == refreshed.tenant_id else t
                for t in load_tokens(self._path)
            ]
            save_tokens(tokens, self._path)
            return refreshed.access_token

    async def _refresh(self, token: TokenSet) -> TokenSet:
        client_id, client_secret = get_client_credentials()
        logger.info(f"Refreshing access token for {token.tenant_name}")

        request = {
            "data": {"grant_type": "refresh_token", "refresh_token": token.refresh_token},
            "auth": (client_id, client_secret),
        }
        if self._http_client is not None:
            response = await self._http_client.post(TOKEN_URL, **request)
        else:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(TOKEN_URL, **request)

        if response.status_code != 200:
            raise SessionExpiredError(
                f"Token refresh failed for {token.tenant_name} with status "
                f"{response.status_code}: {response.text}"
            )

        data = response.json()
        return token.model_copy(
            update={
                "access_token": data["access_token"],
                "refresh_token": data.get("refresh_token", token.refresh_token),
                "expires_at": time.time() + int(data.get("expires_in", 1800)),
            }
        )
