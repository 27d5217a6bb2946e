"""
Parsing and formatting of provider display text ("6 km", "1 hr 5 min") for itinerary totals.
"""
import math
import re
from typing import Any

from campusnav.directions.models import Step

DEFAULT_DURATION_SECONDS = 300
# Inputs are truncated before matching; quantifiers are bounded.
MAX_TEXT_LEN = 50

_HOURS_RE = re.compile(r"(\d{1,5})\s{0,5}h(?:ours?)?", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d{1,5})\s{0,5}m(?:ins?)?", re.IGNORECASE)
_KM_RE = re.compile(r"([\d.]{1,10})\s{0,5}km", re.IGNORECASE)
_M_RE = re.compile(r"([\d.]{1,10})\s{0,5}m", re.IGNORECASE)


def parse_duration_to_seconds(text: Any = "") -> int:
    """Seconds from "1 hr 5 min" / "30 mins". Falls back to 300 when nothing matches."""
    if not isinstance(text, str):
        return DEFAULT_DURATION_SECONDS
    safe = text[:MAX_TEXT_LEN]
    secs = 0
    hours = _HOURS_RE.search(safe)
    minutes = _MINUTES_RE.search(safe)
    if hours:
        secs += int(hours.group(1)) * 3600
    if minutes:
        secs += int(minutes.group(1)) * 60
    return secs or DEFAULT_DURATION_SECONDS


def _to_float(raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        return 0.0


def parse_distance_to_metres(text: Any = "") -> int:
    """Metres from "6.3 km" or "200 m"; 0 when neither unit is present."""
    if not isinstance(text, str):
        return 0
    safe = text[:MAX_TEXT_LEN]
    km = _KM_RE.search(safe)
    if km:
        return round(_to_float(km.group(1)) * 1000)
    m = _M_RE.search(safe)
    if m:
        return round(_to_float(m.group(1)))
    return 0


def format_distance(metres: int) -> str:
    if metres >= 1000:
        return f"{metres / 1000:.1f} km"
    return f"{metres} m"


def format_duration(total_seconds: float) -> str:
    hours = int(total_seconds // 3600)
    minutes = math.ceil((total_seconds % 3600) / 60)
    if hours > 0:
        return f"{hours} hr {minutes} min"
    return f"{minutes} min"


def drop_trailing_destination_step(steps: list[Step]) -> list[Step]:
    """Drop the final "...destination..." step of a leg that ends at an intermediate stop."""
    if steps and "destination" in steps[-1].instruction.lower():
        return steps[:-1]
    return list(steps)
