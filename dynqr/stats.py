"""Scan analytics for a single dynamic code."""
from collections import Counter

from dynqr import models

# How many of the most recent scan days the daily series keeps
DAILY_WINDOW = 14


def _scan_date(scan: models.ScanEvent) -> str:
    return scan.scanned_at.date().isoformat()


def summarize_scans(scans: list[models.ScanEvent]) -> dict:
    """Aggregate a code's scans into chart-ready totals.

    ``scans`` may come in any order. The result matches ``schemas.ScanStats``:
    ``daily`` holds the last ``DAILY_WINDOW`` scan dates in ascending order,
    ``countries`` is sorted by scan count descending, and ``first_scan`` is the
    chronologically earliest scan. Scans without a country are counted in the
    totals but not in the per-country breakdown.
    """
    by_date = Counter(_scan_date(scan) for scan in scans)
    by_country = Counter(scan.country for scan in scans if scan.country)

    daily = [
        {"date": day, "scans": by_date[day]}
        for day in sorted(by_date)[-DAILY_WINDOW:]
    ]
    countries = [
        {"name": name, "value": count}
        for name, count in sorted(by_country.items(), key=lambda item: (-item[1], item[0]))
    ]
    first_scan = min(scans, key=lambda scan: (scan.scanned_at, scan.id or 0), default=None)

    return {
        "total_scans": len(scans),
        "scans_by_date": dict(by_date),
        "scans_by_country": dict(by_country),
        "daily": daily,
        "countries": countries,
        "first_scan": first_scan,
        "unique_countries": len(by_country),
        "raw_scans": scans,
    }
