"""
Utility functions
"""

import re
from datetime import datetime, timezone
from typing import Dict
from urllib.parse import urlparse

from .models import CompressedImage


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for safe use in a Content-Disposition header"""
    return re.sub(r'[^\w\-_\.]', '_', filename)


def generate_filename(url: str, format: str) -> str:
    """Generate a download filename from the captured host"""
    host = urlparse(url).hostname or "page"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return sanitize_filename(f"{host}_{timestamp}.{format}")


def image_headers(url: str, image: CompressedImage, elapsed_ms: float) -> Dict[str, str]:
    """Cache and descriptive headers for a successful capture"""
    return {
        "Cache-Control": "public, max-age=3600",
        "Content-Disposition": f'inline; filename="{generate_filename(url, image.format)}"',
        "X-Image-Width": str(image.width),
        "X-Image-Height": str(image.height),
        "X-Original-Size": str(image.source_size),
        "X-Compressed-Size": str(image.size),
        "X-Capture-Time-Ms": str(int(elapsed_ms)),
    }
