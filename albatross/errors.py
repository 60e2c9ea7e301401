"""Typed error hierarchy for albatross.

Every error carries a machine-readable `code`. These are raised only by
parsers and by the caller-side signer; the membership test and the
verifier collapse every failure to ``False`` instead of raising.
"""

from __future__ import annotations

from typing import Optional


class AlbatrossError(Exception):
    """Base for all albatross errors."""
    code: str = "albatross_error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class InvalidAddressError(AlbatrossError, ValueError):
    """An IP address could not be parsed."""
    code = "invalid_address"


class InvalidRangeError(AlbatrossError, ValueError):
    """A CIDR range string is malformed or its prefix is out of bounds."""
    code = "invalid_range"


class InvalidTimestampError(AlbatrossError, ValueError):
    """A signing timestamp is missing, ambiguous or not a 12-digit UTC minute."""
    code = "invalid_timestamp"


class SigningError(AlbatrossError):
    """A request URL cannot be signed."""
    code = "signing_error"


class MissingSecretError(SigningError):
    """No shared secret was provided."""
    code = "missing_secret"
