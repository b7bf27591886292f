"""Redirect-and-log handler behind every printed dynamic QR code.

The handler resolves ``?code=`` to a target URL, records a scan event on a
best-effort basis and answers with a 302. Analytics never block the redirect:
once the target URL is known, a failed scan insert is logged and dropped.
"""
import logging
from collections.abc import Mapping
from datetime import datetime, timezone

from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from dynqr import crud

logger = logging.getLogger("dynqr.redirect")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

NO_CODE = "No short code provided"
NOT_FOUND = "QR code not found or inactive"
PAUSED = "QR code is paused"
INTERNAL_ERROR = "Internal server error"


def _error(status_code: int, content: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


def _header(headers: Mapping[str, str], *names: str) -> str | None:
    """First non-empty value among ``names``."""
    for name in names:
        value = headers.get(name)
        if value:
            return value
    return None


def client_ip(headers: Mapping[str, str]) -> str | None:
    forwarded = _header(headers, "x-forwarded-for")
    if forwarded:
        # Left-most entry is the original client
        return forwarded.split(",")[0].strip() or None
    return _header(headers, "x-real-ip")


def build_scan_record(code_id: int, headers: Mapping[str, str]) -> dict:
    """Scan row for ``code_id``. Missing headers leave their field out entirely."""
    record = {
        "dynamic_code_id": code_id,
        "scanned_at": datetime.now(timezone.utc),
    }
    optional = {
        "user_agent": _header(headers, "user-agent"),
        "referrer": _header(headers, "referer", "referrer"),
        "ip_address": client_ip(headers),
    }
    record.update({field: value for field, value in optional.items() if value is not None})
    return record


def handle_dynamic_qr(request: Request, db: Session) -> Response:
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)

    try:
        short_code = request.query_params.get("code")
        logger.info("Received request for short code: %s", short_code)
        if not short_code:
            return _error(400, {"error": NO_CODE})

        code = crud.get_dynamic_code_by_short_code(db, short_code)
        if code is None:
            logger.info("No QR code for short code %s", short_code)
            return _error(404, {"error": NOT_FOUND})
        if not code.active:
            logger.info("QR code %s found but is paused", code.id)
            return _error(404, {"error": PAUSED})

        # Read before the insert; a failed insert rolls the session back.
        code_id, target_url = code.id, code.target_url

        result = crud.record_scan(db, build_scan_record(code_id, request.headers))
        if result.ok:
            logger.info("Scan %s recorded for QR code %s", result.scan.id, code_id)
        else:
            logger.warning("Failed to record scan for QR code %s: %s", code_id, result.error)

        logger.info("Redirecting QR code %s to %s", code_id, target_url)
        return RedirectResponse(url=target_url, status_code=302, headers=CORS_HEADERS)
    except Exception as exc:
        logger.exception("Error processing dynamic QR request")
        return _error(500, {"error": INTERNAL_ERROR, "details": str(exc)})
