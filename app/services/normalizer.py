"""Text and URL normalisation helpers used by the SEO checks."""

import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

_WHITESPACE_RE = re.compile(r"\s+")


def _text(html: str, separator: str = "") -> str:
    if not html:
        return ""
    return BeautifulSoup(html, "lxml").get_text(separator)


def remove_tags(html: str) -> str:
    """Text content of *html* with entities decoded and whitespace untouched."""
    return _text(html)


def strip_tags(html: str) -> str:
    """Text content of *html* with entities decoded and whitespace collapsed."""
    return _WHITESPACE_RE.sub(" ", _text(html, " ")).strip()


def truncate(text: str, limit: int) -> str:
    """Shorten *text* to at most *limit* characters, ending in ``...`` when cut."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def normalise_url(url: str) -> str:
    """Lower-case *url* and drop a trailing slash for canonical comparison."""
    return url.strip().lower().rstrip("/")


def same_url(a: str, b: str) -> bool:
    return normalise_url(a) == normalise_url(b)


def extract_canonical(html: str, base_url: str) -> Optional[str]:
    """Return the ``<link rel="canonical">`` URL in *html*, or *None* if absent.

    ``og:url`` is not a canonical declaration and is ignored.
    """
    soup = BeautifulSoup(html, "lxml")

    link_tag = soup.find("link", rel="canonical")
    if link_tag and link_tag.get("href"):
        return urljoin(base_url, str(link_tag["href"]))

    return None


def has_noindex(html: str) -> bool:
    """Return *True* when a robots (or googlebot) meta tag contains ``noindex``."""
    soup = BeautifulSoup(html, "lxml")
    for meta in soup.find_all("meta", attrs={"name": True, "content": True}):
        name = str(meta["name"]).lower()
        if name in ("robots", "googlebot") and "noindex" in str(meta["content"]).lower():
            return True
    return False
