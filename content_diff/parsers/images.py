"""
Helpers that read ``<img>`` elements out of post content with BeautifulSoup.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set
from urllib.parse import urlparse

from bs4 import BeautifulSoup

_WP_IMAGE_CLASS_RE = re.compile(r"^wp-image-(\d+)$")
RELATIVE_URL_PATHS = "relative URL paths"


@dataclass
class ContentImage:
    src: str
    class_id: Optional[int] = None
    data_id: Optional[int] = None


def find_images(html: str) -> List[ContentImage]:
    """Return every ``<img>`` with a ``src`` found in ``html``."""
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    images: List[ContentImage] = []
    for img in soup.find_all("img"):
        src = (img.get("src") or "").strip()
        if not src:
            continue
        class_id = None
        for css_class in img.get("class") or []:
            match = _WP_IMAGE_CLASS_RE.match(css_class)
            if match:
                class_id = int(match.group(1))
                break
        data_id = img.get("data-id")
        images.append(
            ContentImage(
                src=src,
                class_id=class_id,
                data_id=int(data_id) if data_id and data_id.isdigit() else None,
            )
        )
    return images


def get_image_hostname(src: str) -> str:
    """Hostname of an image ``src``, or :data:`RELATIVE_URL_PATHS` for relative URLs."""
    if src.startswith("//"):
        src = "http:" + src
    hostname = urlparse(src).hostname
    return hostname or RELATIVE_URL_PATHS


def get_all_image_hostnames(contents: Iterable[str]) -> Dict[str, int]:
    """Map each image hostname to the number of contents using it."""
    hostnames: Dict[str, int] = {}
    for html in contents:
        seen: Set[str] = set()
        for image in find_images(html):
            hostname = get_image_hostname(image.src)
            if hostname in seen:
                continue
            seen.add(hostname)
            hostnames[hostname] = hostnames.get(hostname, 0) + 1
    return hostnames
