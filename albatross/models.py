"""Pydantic models for the verifier's HTTP surface."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class RangeMatch(BaseModel):
    """A provider range that contains a looked-up address."""
    provider: str
    cidr: str


class CheckResponse(BaseModel):
    """GET /api/check response."""
    ipaddress: str
    version: int
    match: Optional[RangeMatch] = None

    @property
    def matched(self) -> bool:
        return self.match is not None


class HealthResponse(BaseModel):
    status: str = "healthy"
    service: str = "albatross-gate"
    version: str = "1.0.0"
    signing_enabled: bool = False
    provider_ranges: int = 0
