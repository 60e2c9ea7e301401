"""FastAPI routes for the verifying proxy.

GET /api/check?ipaddress=<ip> reports the provider range holding the address (signed requests only)
"""

from __future__ import annotations

import ipaddress
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from albatross.models import CheckResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["check"])


def _get_verifier(request: Request):
    """Extract the RequestVerifier from app state."""
    verifier = getattr(request.app.state, "verifier", None)
    if verifier is None:
        raise HTTPException(status_code=503, detail="Request signing not configured")
    return verifier


async def require_signed_request(request: Request) -> None:
    """Reject the request unless its URL carries a valid signature.

    The detail is the same for every failure so callers cannot tell a
    stale timestamp from a bad signature.
    """
    verifier = _get_verifier(request)
    header_name = request.app.state.signature_header
    token = request.headers.get(header_name, "")
    if not verifier.verify(str(request.url), token):
        logger.info("Rejected unsigned or invalid request to %s", request.url.path)
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid authentication token")


@router.get("/check", response_model=CheckResponse, dependencies=[Depends(require_signed_request)])
async def check_ip(request: Request, ip: str = Query(..., alias="ipaddress")) -> CheckResponse:
    """Report which configured provider range, if any, holds the address."""
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid IP address: {ip}")

    ranges = request.app.state.provider_ranges
    match = ranges.identify(address)
    if match:
        logger.debug("%s matched %s range %s", address, match.provider, match.cidr)
    return CheckResponse(ipaddress=str(address), version=address.version, match=match)
