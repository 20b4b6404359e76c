"""
Parse raw capture options into a CaptureRequest.

Raw options come from either a query string (all strings) or a JSON body
(native types). Checks run in a fixed order and the first failure wins.
"""

from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

from .config import Settings
from .errors import InvalidBody, InvalidDimensions, InvalidQuality, InvalidUrl, MissingParameter
from .models import CaptureRequest, WaitPolicy

MIN_DIMENSION = 100
MAX_DIMENSION = 4000
MIN_QUALITY = 1
MAX_QUALITY = 100

_TRUE_VALUES = {"true", "1", "yes", "on"}

_WAIT_ALIASES = {
    "load": WaitPolicy.LOAD,
    "domcontentloaded": WaitPolicy.DOMCONTENTLOADED,
    "network-idle": WaitPolicy.NETWORK_IDLE,
    "network_idle": WaitPolicy.NETWORK_IDLE,
    "networkidle": WaitPolicy.NETWORK_IDLE,
    "networkidle0": WaitPolicy.NETWORK_IDLE,
    "networkidle2": WaitPolicy.NETWORK_IDLE,
}


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _to_int(value: Any) -> Optional[int]:
    """Integer value of ``value``, or None if it is not a whole number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_url(value: Any) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingParameter("URL parameter is required", field="url",
                               hint="Pass the page to capture as ?url=https://...")
    if not isinstance(value, str):
        raise InvalidUrl("Invalid URL format. Please provide a valid http:// or https:// URL", field="url")
    url = value.strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        parsed = None
    if parsed is None or parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        raise InvalidUrl("Invalid URL format. Please provide a valid http:// or https:// URL", field="url")
    return url


def validate_dimension(value: Any, name: str, default: int) -> int:
    if value is None:
        return default
    number = _to_int(value)
    if number is None or not MIN_DIMENSION <= number <= MAX_DIMENSION:
        raise InvalidDimensions(
            f"{name.capitalize()} must be between {MIN_DIMENSION} and {MAX_DIMENSION} pixels",
            field=name,
        )
    return number


def validate_quality(value: Any, default: int) -> int:
    if value is None:
        return default
    number = _to_int(value)
    if number is None or not MIN_QUALITY <= number <= MAX_QUALITY:
        raise InvalidQuality(f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}", field="quality")
    return number


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return False


def parse_wait_policy(value: Any) -> WaitPolicy:
    """Map a waitUntil value onto a WaitPolicy; unknown values mean network-idle."""
    if isinstance(value, str):
        return _WAIT_ALIASES.get(value.strip().lower(), WaitPolicy.NETWORK_IDLE)
    return WaitPolicy.NETWORK_IDLE


def parse_timeout(value: Any, default: int, ceiling: int) -> int:
    number = _to_int(value) if value is not None else None
    if number is None or number <= 0:
        number = default
    return min(number, ceiling)


def flatten_body(body: Any) -> Dict[str, Any]:
    """Turn a POST body ``{url, options: {...}}`` into one flat mapping.

    The target always comes from the top-level ``url``; a ``url`` inside
    ``options`` is ignored.
    """
    if not isinstance(body, dict):
        raise InvalidBody("Request body must be a JSON object")
    options = body.get("options") or {}
    if not isinstance(options, dict):
        raise InvalidBody("options must be a JSON object", field="options")
    raw = {key: value for key, value in body.items() if key != "options"}
    raw.update({key: value for key, value in options.items() if key != "url"})
    return raw


def parse_capture_request(raw: Mapping[str, Any], settings: Settings) -> CaptureRequest:
    """Build a CaptureRequest from raw options or raise a ValidationFailure."""
    url = validate_url(_pick(raw, "url"))
    width = validate_dimension(_pick(raw, "width"), "width", settings.DEFAULT_WIDTH)
    height = validate_dimension(_pick(raw, "height"), "height", settings.DEFAULT_HEIGHT)
    quality = validate_quality(_pick(raw, "quality"), settings.DEFAULT_QUALITY)

    return CaptureRequest(
        url=url,
        width=width,
        height=height,
        quality=quality,
        full_page=parse_bool(_pick(raw, "fullPage", "full_page")),
        wait_policy=parse_wait_policy(_pick(raw, "waitUntil", "wait_until")),
        navigation_timeout_ms=parse_timeout(
            _pick(raw, "timeout"),
            settings.DEFAULT_NAVIGATION_TIMEOUT_MS,
            settings.CAPTURE_TIMEOUT_MS,
        ),
        overall_timeout_ms=settings.CAPTURE_TIMEOUT_MS,
    )
