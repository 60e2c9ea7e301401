"""Signed-request authentication between caller and proxy.

Both sides import from here so canonicalization never drifts apart.
"""

from albatross.auth.signing import (
    SIGNATURE_HEADER,
    TIMESTAMP_WINDOW,
    RequestSigner,
    RequestVerifier,
    SignedRequest,
    sign,
    verify,
)

__all__ = [
    "SIGNATURE_HEADER",
    "TIMESTAMP_WINDOW",
    "RequestSigner",
    "RequestVerifier",
    "SignedRequest",
    "sign",
    "verify",
]
