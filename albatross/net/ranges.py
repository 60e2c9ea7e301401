"""CIDR membership testing over packed address bytes.

Matching is done byte-by-byte on the packed address: whole bytes of the
prefix are compared for equality, then the leftover bits are compared
under a mask. Any malformed input makes the test return False.
"""

from __future__ import annotations

import ipaddress
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

from albatross.errors import InvalidAddressError, InvalidRangeError
from albatross.models import RangeMatch

logger = logging.getLogger(__name__)

AddressLike = Union[str, bytes, ipaddress.IPv4Address, ipaddress.IPv6Address]

_PREFIX_RE = re.compile(r"[0-9]+")


def parse_address(value: AddressLike) -> bytes:
    """Return the packed 4- or 16-byte form of an address."""
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return value.packed
    if isinstance(value, (bytes, bytearray)):
        if len(value) not in (4, 16):
            raise InvalidAddressError(f"Packed address must be 4 or 16 bytes, got {len(value)}")
        return bytes(value)
    if isinstance(value, str):
        try:
            return ipaddress.ip_address(value).packed
        except ValueError as exc:
            raise InvalidAddressError(f"Invalid IP address: {value!r}") from exc
    raise InvalidAddressError(f"Unsupported address type: {type(value).__name__}")


def _prefix_matches(candidate: bytes, network: bytes, prefix_length: int) -> bool:
    full_bytes = prefix_length // 8
    remaining_bits = prefix_length % 8

    for i in range(full_bytes):
        if candidate[i] != network[i]:
            return False

    if remaining_bits > 0 and full_bytes < len(candidate):
        mask = (0xFF << (8 - remaining_bits)) & 0xFF
        if candidate[full_bytes] & mask != network[full_bytes] & mask:
            return False

    return True


@dataclass(frozen=True)
class CidrRange:
    """A network address plus prefix length, e.g. ``192.168.1.0/24``.

    Host bits in ``network`` are allowed; they sit outside the mask and
    never take part in a comparison.
    """
    network: bytes
    prefix_length: int

    def __post_init__(self):
        if len(self.network) not in (4, 16):
            raise InvalidRangeError(f"Network must be 4 or 16 bytes, got {len(self.network)}")
        if not 0 <= self.prefix_length <= self.max_prefix_length:
            raise InvalidRangeError(
                f"Prefix /{self.prefix_length} out of bounds for a "
                f"{self.max_prefix_length}-bit address"
            )

    @classmethod
    def parse(cls, text: str) -> "CidrRange":
        """Build a range from ``"<address>/<prefix>"``.

        Raises InvalidRangeError on a missing ``/``, a non-decimal prefix,
        an unparsable address, or a prefix wider than the address.
        """
        if not isinstance(text, str):
            raise InvalidRangeError(f"CIDR must be a string, got {type(text).__name__}")
        parts = text.split("/")
        if len(parts) != 2:
            raise InvalidRangeError(f"CIDR must have the form address/prefix: {text!r}")
        address_part, prefix_part = parts

        # int() would also take "+8", " 8" and "1_6"
        if not _PREFIX_RE.fullmatch(prefix_part):
            raise InvalidRangeError(f"Prefix must be a decimal integer: {prefix_part!r}")

        try:
            network = parse_address(address_part)
        except InvalidAddressError as exc:
            raise InvalidRangeError(f"Invalid network address in {text!r}") from exc

        return cls(network=network, prefix_length=int(prefix_part))

    @property
    def version(self) -> int:
        return 4 if len(self.network) == 4 else 6

    @property
    def max_prefix_length(self) -> int:
        return len(self.network) * 8

    def contains(self, address: AddressLike) -> bool:
        """True if address lies inside this range. Never raises."""
        try:
            candidate = parse_address(address)
        except InvalidAddressError:
            return False
        if len(candidate) != len(self.network):
            return False
        return _prefix_matches(candidate, self.network, self.prefix_length)

    def __str__(self) -> str:
        return f"{ipaddress.ip_address(self.network)}/{self.prefix_length}"


def is_in_range(ip: AddressLike, cidr: str) -> bool:
    """Check whether ip falls inside the CIDR range.

    Fails closed: malformed ranges, unparsable addresses and cross-family
    comparisons all return False.
    """
    try:
        return CidrRange.parse(cidr).contains(ip)
    except InvalidRangeError:
        return False
    except Exception:
        logger.debug("Range check failed for %r in %r", ip, cidr, exc_info=True)
        return False


def find_matching_range(ip: AddressLike, cidrs: Iterable[str]) -> Optional[str]:
    """Return the first CIDR string in cidrs that contains ip, or None."""
    for cidr in cidrs:
        if is_in_range(ip, cidr):
            return cidr
    return None


def is_in_any_range(ip: AddressLike, cidrs: Iterable[str]) -> bool:
    return find_matching_range(ip, cidrs) is not None


# ---------------------------------------------------------------------------
# Named range lists (cloud provider identification)
# ---------------------------------------------------------------------------

class ProviderRanges:
    """Named lists of CIDR ranges, e.g. published cloud provider blocks.

    Ranges are parsed once on construction. Entries that fail to parse are
    logged and skipped so one bad line cannot disable a whole provider, and
    a provider whose value is not a list is skipped without touching the
    others.
    """

    def __init__(self, ranges: Optional[Mapping[str, Iterable[str]]] = None):
        self._ranges: Dict[str, List[CidrRange]] = {}
        for provider, cidrs in (ranges or {}).items():
            self.add(provider, cidrs)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ProviderRanges":
        """Load ``{"provider": ["cidr", ...]}`` from a JSON file."""
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise InvalidRangeError(f"Range file must hold a JSON object: {path}")
        loaded = cls(data)
        logger.info("Loaded %d ranges for %d providers from %s", len(loaded), len(loaded.providers), path)
        return loaded

    def add(self, provider: str, cidrs: Union[str, Iterable[str]]) -> None:
        """Add ranges for provider. A single CIDR string counts as a one-item list."""
        if isinstance(cidrs, str):
            cidrs = [cidrs]
        elif not isinstance(cidrs, (list, tuple)):
            logger.warning("Ignoring provider %s: expected a list of CIDRs, got %s", provider, type(cidrs).__name__)
            return
        parsed = self._ranges.setdefault(provider, [])
        for cidr in cidrs:
            try:
                parsed.append(CidrRange.parse(cidr))
            except InvalidRangeError:
                logger.warning("Ignoring invalid CIDR for %s: %r", provider, cidr)

    @property
    def providers(self) -> List[str]:
        return list(self._ranges)

    def __len__(self) -> int:
        return sum(len(r) for r in self._ranges.values())

    def identify(self, ip: AddressLike) -> Optional[RangeMatch]:
        """Return the first provider range containing ip, or None."""
        try:
            candidate = parse_address(ip)
        except InvalidAddressError:
            return None
        for provider, ranges in self._ranges.items():
            for cidr in ranges:
                if cidr.contains(candidate):
                    return RangeMatch(provider=provider, cidr=str(cidr))
        return None
