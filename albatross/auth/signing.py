"""HMAC request signing and verification between caller and proxy.

The caller lower-cases the request URL, appends a minute-resolution UTC
``timestamp`` query parameter, and sends an HMAC-SHA256 of the result in
the ``Worker-Token`` header. The proxy recomputes the HMAC over the URL it
received, so parties sharing the secret can authenticate each other
without any session or nonce store.

Verification accepts stamps within two minutes of the verifier's clock
in either direction.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from albatross.auth.canonical import (
    build_canonical_url,
    canonicalize_url,
    extract_timestamp,
    parse_timestamp,
    utc_now,
    within_window,
)
from albatross.errors import MissingSecretError

logger = logging.getLogger(__name__)

TIMESTAMP_WINDOW = timedelta(minutes=2)
SIGNATURE_HEADER = "Worker-Token"

Secret = Union[bytes, str]
Clock = Callable[[], datetime]


@dataclass(frozen=True)
class SignedRequest:
    """A canonical request URL and its signature."""
    canonical_url: str
    timestamp: str
    signature: str  # standard Base64 of the raw digest

    @property
    def digest(self) -> bytes:
        return base64.b64decode(self.signature)

    def headers(self, header_name: str = SIGNATURE_HEADER) -> dict:
        return {header_name: self.signature}


def _secret_bytes(secret: Secret) -> bytes:
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    return bytes(secret)


def compute_signature(secret: Secret, message: str) -> str:
    """Base64 HMAC-SHA256 of the UTF-8 message."""
    digest = hmac.new(_secret_bytes(secret), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def sign(secret: Secret, logical_url: str, *, now: Optional[datetime] = None) -> SignedRequest:
    """Canonicalize, timestamp and sign a request URL.

    Raises MissingSecretError for an empty secret and SigningError when the
    URL cannot be canonicalized.
    """
    if not secret:
        raise MissingSecretError("A shared secret is required to sign requests")
    moment = now or utc_now()
    canonical_url = build_canonical_url(logical_url, moment)
    signed = SignedRequest(
        canonical_url=canonical_url,
        timestamp=extract_timestamp(canonical_url),
        signature=compute_signature(secret, canonical_url),
    )
    logger.debug("Signed request for %s", canonical_url)
    return signed


def verify(
    secret: Secret,
    received_url: str,
    received_signature: Union[bytes, str, None],
    *,
    now: Optional[datetime] = None,
    window: timedelta = TIMESTAMP_WINDOW,
) -> bool:
    """Verify a signed request URL.

    Returns True only if the URL carries a single well-formed timestamp
    inside the window AND the signature matches. Every failure, including
    unexpected errors, returns False.
    """
    try:
        if not secret or not received_signature or not received_url:
            logger.debug("Request rejected: missing secret, URL or signature")
            return False

        canonical_url = canonicalize_url(received_url)

        stamp = extract_timestamp(canonical_url)
        if stamp is None:
            logger.debug("Request rejected: no timestamp parameter")
            return False
        issued_at = parse_timestamp(stamp)

        current = now or utc_now()
        if not within_window(issued_at, current, window):
            logger.debug("Request rejected: timestamp %s outside window", stamp)
            return False

        expected = compute_signature(secret, canonical_url).encode("ascii")
        if isinstance(received_signature, str):
            received_signature = received_signature.encode("utf-8")
        if not hmac.compare_digest(expected, bytes(received_signature)):
            logger.debug("Request rejected: signature mismatch")
            return False
        return True
    except Exception:
        logger.debug("Request verification failed", exc_info=True)
        return False


class RequestSigner:
    """Caller side: signs outbound request URLs with a shared secret."""

    def __init__(self, secret: Secret, clock: Clock = utc_now):
        if not secret:
            raise MissingSecretError("A shared secret is required to sign requests")
        self._secret = _secret_bytes(secret)
        self._clock = clock

    def sign(self, logical_url: str) -> SignedRequest:
        return sign(self._secret, logical_url, now=self._clock())


class RequestVerifier:
    """Proxy side: checks inbound request URLs against a shared secret."""

    def __init__(self, secret: Secret, clock: Clock = utc_now, window: timedelta = TIMESTAMP_WINDOW):
        self._secret = _secret_bytes(secret) if secret else b""
        self._clock = clock
        self.window = window

    def verify(self, received_url: str, received_signature: Union[bytes, str, None]) -> bool:
        try:
            current = self._clock()
        except Exception:
            logger.warning("Clock read failed during verification", exc_info=True)
            return False
        return verify(self._secret, received_url, received_signature, now=current, window=self.window)
