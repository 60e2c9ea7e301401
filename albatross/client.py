"""HTTP client for calling the verifying proxy.

Every outbound request is signed: the logical URL is canonicalized,
timestamped, and sent with its signature in the configured header.
Uses httpx with configurable timeouts.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Union
from urllib.parse import urlencode

import httpx

from albatross.auth.signing import SIGNATURE_HEADER, RequestSigner, Secret, SignedRequest
from albatross.auth.canonical import utc_now
from albatross.config import Settings, settings
from albatross.models import CheckResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10

QueryValue = Union[str, int, float, bool]


def build_logical_url(base_url: str, params: Optional[Mapping[str, QueryValue]] = None) -> str:
    """Join base_url and params, keeping parameter insertion order."""
    if not params:
        return base_url
    query = urlencode({k: _format_value(v) for k, v in params.items()}, safe=":")
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{query}"


def _format_value(value: QueryValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SignedClient:
    """HTTP client that signs every request it sends."""

    def __init__(
        self,
        secret: Secret,
        worker_url: str,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        header_name: str = SIGNATURE_HEADER,
        clock=utc_now,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.signer = RequestSigner(secret, clock=clock)
        self.worker_url = worker_url
        self.timeout_s = timeout_s
        self.header_name = header_name
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, **kwargs) -> "SignedClient":
        """Build a client from the secret, worker URL, timeout and header in config."""
        config = config or settings
        return cls(
            config.get_signing_secret(),
            config.worker_url,
            timeout_s=config.client_timeout_s,
            header_name=config.signature_header,
            **kwargs,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_s, connect=5.0),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SignedClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def sign(self, url: str, params: Optional[Mapping[str, QueryValue]] = None) -> SignedRequest:
        return self.signer.sign(build_logical_url(url, params))

    async def get(self, url: str, params: Optional[Mapping[str, QueryValue]] = None) -> httpx.Response:
        """Sign and send a GET. Transport errors propagate."""
        signed = self.sign(url, params)
        client = await self._get_client()
        return await client.get(signed.canonical_url, headers=signed.headers(self.header_name))

    # ------------------------------------------------------------------
    # Range lookup
    # ------------------------------------------------------------------

    async def check_ip(self, ip: str) -> Optional[CheckResponse]:
        """Ask the proxy which provider range holds ip. Returns None on failure."""
        try:
            resp = await self.get(self.worker_url, {"ipAddress": ip})
            if resp.status_code == 200:
                return CheckResponse.model_validate(resp.json())
            logger.warning("Check for %s failed: %d %s", ip, resp.status_code, resp.text[:200])
            return None
        except Exception as exc:
            logger.warning("Check for %s error: %s", ip, exc)
            return None
