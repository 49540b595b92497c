"""URL recognition for the supported content families."""

from __future__ import annotations

import re
from typing import Optional, Pattern, Sequence, Tuple

from .models import SourceFamily, SourceReference

SCRIBD_DOCUMENT = re.compile(
    r"^https?://(?:www\.)?scribd\.com/(document|presentation|doc)/(\d+)(?:[/?#].*)?$"
)
SCRIBD_EMBED = re.compile(r"^https?://(?:www\.)?scribd\.com/embeds/(\d+)/content(?:[/?#].*)?$")

SLIDESHARE_SLIDESHOW = re.compile(
    r"^https?://(?:www\.)?slideshare\.net/slideshow/([^/?#]+)(?:/[^?#]*)?(?:[?#].*)?$"
)
SLIDESHARE_PPT = re.compile(r"^https?://(?:www\.)?slideshare\.net/[^/?#]+/([^/?#]+)/?(?:[?#].*)?$")

EVERAND_PODCAST_SERIES = re.compile(
    r"^https?://(?:www\.)?everand\.com/podcast-show/(\d+)(?:/[^?#]*)?(?:[?#].*)?$"
)
EVERAND_PODCAST_EPISODE = re.compile(
    r"^https?://(?:www\.)?everand\.com/podcast/(\d+)(?:/[^?#]*)?(?:[?#].*)?$"
)
EVERAND_PODCAST_LISTEN = re.compile(
    r"^https?://(?:www\.)?everand\.com/listen/podcast/(\d+)(?:/[^?#]*)?(?:[?#].*)?$"
)

# (family, pattern, identifier group); first match wins.
PATTERNS: Sequence[Tuple[SourceFamily, Pattern[str], int]] = (
    (SourceFamily.DOCUMENT, SCRIBD_DOCUMENT, 2),
    (SourceFamily.DOCUMENT, SCRIBD_EMBED, 1),
    (SourceFamily.SLIDE_DECK, SLIDESHARE_SLIDESHOW, 1),
    (SourceFamily.SLIDE_DECK, SLIDESHARE_PPT, 1),
    (SourceFamily.PODCAST_SERIES, EVERAND_PODCAST_SERIES, 1),
    (SourceFamily.PODCAST_EPISODE, EVERAND_PODCAST_EPISODE, 1),
    (SourceFamily.PODCAST_EPISODE, EVERAND_PODCAST_LISTEN, 1),
)


def classify(url: str) -> SourceReference:
    """Map a URL to its content family and stable identifier.

    Never raises: anything that does not match a known pattern comes back as
    ``SourceFamily.UNRECOGNIZED``.
    """
    candidate = (url or "").strip()
    for family, pattern, group in PATTERNS:
        match = pattern.match(candidate)
        if match:
            return SourceReference(url=candidate, family=family, identifier=match.group(group))
    return SourceReference(url=candidate, family=SourceFamily.UNRECOGNIZED)


def scribd_embed_url(identifier: str) -> str:
    return f"https://www.scribd.com/embeds/{identifier}/content"


def everand_listen_url(identifier: str) -> str:
    return f"https://www.everand.com/listen/podcast/{identifier}"


def series_identifier(url: str) -> Optional[str]:
    match = EVERAND_PODCAST_SERIES.match(url or "")
    return match.group(1) if match else None
