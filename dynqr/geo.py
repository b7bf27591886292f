"""IP geolocation for stored scans.

Runs apart from the redirect path: scans are written with whatever the request
carried, and this pass fills ``country``/``city``/``latitude``/``longitude``
later for rows that have an IP address but no location yet.
"""
import logging
import os
from typing import Callable, Optional

import requests
from sqlalchemy.orm import Session

from dynqr import crud

logger = logging.getLogger("dynqr.geo")

DEFAULT_GEOIP_URL = "http://ip-api.com/json/{ip}?fields=status,country,city,lat,lon"
LOCAL_ADDRESSES = {"127.0.0.1", "::1", "localhost"}

Lookup = Callable[[str], Optional[dict]]


def lookup_ip(ip: str) -> Optional[dict]:
    """Location for ``ip`` as scan column values, or None."""
    if not ip or ip in LOCAL_ADDRESSES:
        return None
    url = os.getenv("GEOIP_URL", DEFAULT_GEOIP_URL)
    timeout = float(os.getenv("GEOIP_TIMEOUT", "9"))
    try:
        resp = requests.get(url.format(ip=ip), timeout=timeout)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Geolocation lookup failed for %s: %s", ip, exc)
        return None
    if not isinstance(data, dict) or data.get("status") != "success":
        return None
    return {
        "country": data.get("country") or None,
        "city": data.get("city") or None,
        "latitude": data.get("lat"),
        "longitude": data.get("lon"),
    }


def enrich_scans(
    db: Session, user_id: str, lookup: Optional[Lookup] = None, limit: int = 100
) -> tuple[int, int]:
    """Geolocate up to ``limit`` of the user's scans. Returns (checked, updated)."""
    lookup = lookup or lookup_ip
    scans = crud.get_scans_missing_geo(db, user_id, limit=limit)
    cache: dict[str, Optional[dict]] = {}
    updated = 0
    for scan in scans:
        if scan.ip_address not in cache:
            cache[scan.ip_address] = lookup(scan.ip_address)
        location = cache[scan.ip_address]
        if not location or not location.get("country"):
            continue
        for field, value in location.items():
            setattr(scan, field, value)
        updated += 1
    if updated:
        db.commit()
    logger.info("Geolocated %s of %s scans for %s", updated, len(scans), user_id)
    return len(scans), updated
