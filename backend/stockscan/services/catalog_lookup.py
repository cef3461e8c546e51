"""
AccessGUDID (FDA) catalog lookup used to suggest a REF for an unmapped GTIN.

The device record's catalog number is usually the manufacturer REF the ERP
counts by. Suggestions are never applied automatically: the operator confirms
them through the mapping endpoints. Answers, including "no record", are cached
in-memory for an hour; failed lookups are not.
"""

import logging
import time
from typing import Any

import httpx

logger = logging.getLogger(__name__)

GUDID_LOOKUP_URL = "https://accessgudid.nlm.nih.gov/api/v2/devices/lookup.json"
CACHE_TTL = 3600  # 1 hour
REQUEST_TIMEOUT = 5.0  # seconds

# gtin -> (timestamp, suggestions)
_cache: dict[str, tuple[float, list[dict[str, str]]]] = {}


def _extract_suggestion(device: dict[str, Any]) -> dict[str, str] | None:
    ref = device.get("catalogNumber") or device.get("versionModelNumber") or ""
    if not ref:
        return None
    return {
        "ref": ref,
        "company_name": device.get("companyName") or "",
        "brand_name": device.get("brandName") or "",
        "description": device.get("deviceDescription") or "",
    }


def _is_lookup_gtin(gtin: str) -> bool:
    # HIBC pseudo-GTINs ("HIBC:...") and free text are not device identifiers
    return gtin.isascii() and gtin.isdigit() and len(gtin) in (8, 12, 13, 14)


def _cached(gtin: str) -> list[dict[str, str]] | None:
    entry = _cache.get(gtin)
    if entry is None:
        return None
    stored_at, suggestions = entry
    if time.time() - stored_at >= CACHE_TTL:
        del _cache[gtin]
        return None
    return suggestions


async def _fetch_device(gtin: str) -> dict[str, Any] | None:
    """GUDID device record for ``gtin``, or None when GUDID has no record."""
    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
        resp = await client.get(GUDID_LOOKUP_URL, params={"di": gtin})
    if resp.status_code == 404:
        return None
    resp.raise_for_status()
    return resp.json().get("gudid", {}).get("device")


async def suggest_refs(gtin: str) -> list[dict[str, str]]:
    """REF suggestions for ``gtin``: ref, company_name, brand_name, description.

    Empty when the GTIN cannot be looked up, GUDID has no usable catalog
    number, or the request fails.
    """
    if not _is_lookup_gtin(gtin):
        return []

    cached = _cached(gtin)
    if cached is not None:
        return cached

    try:
        device = await _fetch_device(gtin)
    except httpx.HTTPError as exc:
        logger.warning("REF suggestion lookup failed for GTIN %s: %r", gtin, exc)
        return []
    except ValueError:
        logger.warning("AccessGUDID returned a non-JSON body for GTIN %s", gtin)
        return []

    suggestion = _extract_suggestion(device) if device else None
    suggestions = [suggestion] if suggestion else []
    _cache[gtin] = (time.time(), suggestions)
    return suggestions


def clear_cache() -> None:
    """Clear the lookup cache (for testing)."""
    _cache.clear()
