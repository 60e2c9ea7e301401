"""Address range matching."""

from albatross.net.ranges import (
    CidrRange,
    ProviderRanges,
    find_matching_range,
    is_in_any_range,
    is_in_range,
    parse_address,
)

__all__ = [
    "CidrRange",
    "ProviderRanges",
    "find_matching_range",
    "is_in_any_range",
    "is_in_range",
    "parse_address",
]
