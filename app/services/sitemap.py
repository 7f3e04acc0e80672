"""Sitemap XML serialisation (urlset, sitemap index, news/image/video extensions)."""

import logging
import re
from datetime import date, datetime, timezone
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

from lxml import etree

logger = logging.getLogger(__name__)

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
NEWS_NS = "http://www.google.com/schemas/sitemap-news/0.9"
IMAGE_NS = "http://www.google.com/schemas/sitemap-image/1.1"
VIDEO_NS = "http://www.google.com/schemas/sitemap-video/1.1"

# Characters outside the XML 1.0 Char production; lxml refuses to serialise them
_XML_INVALID_RE = re.compile(r"[^\u0009\u000A\u000D\u0020-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]")
_DASHES_RE = re.compile(r"-{2,}")


class NewsInfo(NamedTuple):
    publication_name: str
    language: str
    publication_date: str
    title: str
    keywords: Optional[str] = None


class ImageInfo(NamedTuple):
    loc: str
    title: Optional[str] = None
    caption: Optional[str] = None


class VideoInfo(NamedTuple):
    thumbnail_loc: str
    title: str
    description: str
    content_loc: str
    player_loc: str
    publication_date: str
    uploader: str
    uploader_info: str
    tag: Optional[str] = None


class SitemapUrl(NamedTuple):
    loc: str
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[str] = None
    news: Optional[NewsInfo] = None
    images: Tuple[ImageInfo, ...] = ()
    videos: Tuple[VideoInfo, ...] = ()


# ---------------------------------------------------------------------------
# Date formatting
# ---------------------------------------------------------------------------

def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_date(value: Optional[datetime], today: date) -> str:
    """``YYYY-MM-DD`` in UTC, or *today* when the timestamp is missing."""
    if value is None:
        return today.isoformat()
    return as_utc(value).date().isoformat()


def format_datetime(value: datetime) -> str:
    """W3C datetime in UTC, e.g. ``2024-05-01T08:30:00+00:00``."""
    return as_utc(value).isoformat(timespec="seconds")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def xml_safe(value: str) -> str:
    """Drop control characters that XML 1.0 cannot represent."""
    return _XML_INVALID_RE.sub("", value)


def _sub(parent: etree._Element, ns: str, tag: str, text: Optional[str] = None, **attrs) -> etree._Element:
    attrs = {name: xml_safe(value) for name, value in attrs.items()}
    elem = etree.SubElement(parent, f"{{{ns}}}{tag}", **attrs)
    if text is not None:
        elem.text = xml_safe(text)
    return elem


def _append_news(parent: etree._Element, news: NewsInfo) -> None:
    node = _sub(parent, NEWS_NS, "news")
    publication = _sub(node, NEWS_NS, "publication")
    _sub(publication, NEWS_NS, "name", news.publication_name)
    _sub(publication, NEWS_NS, "language", news.language)
    _sub(node, NEWS_NS, "publication_date", news.publication_date)
    _sub(node, NEWS_NS, "title", news.title)
    if news.keywords:
        _sub(node, NEWS_NS, "keywords", news.keywords)


def _append_image(parent: etree._Element, image: ImageInfo) -> None:
    node = _sub(parent, IMAGE_NS, "image")
    _sub(node, IMAGE_NS, "loc", image.loc)
    if image.title:
        _sub(node, IMAGE_NS, "title", image.title)
    if image.caption:
        _sub(node, IMAGE_NS, "caption", image.caption)


def _append_video(parent: etree._Element, video: VideoInfo) -> None:
    node = _sub(parent, VIDEO_NS, "video")
    _sub(node, VIDEO_NS, "thumbnail_loc", video.thumbnail_loc)
    _sub(node, VIDEO_NS, "title", video.title)
    _sub(node, VIDEO_NS, "description", video.description)
    _sub(node, VIDEO_NS, "content_loc", video.content_loc)
    _sub(node, VIDEO_NS, "player_loc", video.player_loc, allow_embed="yes")
    _sub(node, VIDEO_NS, "publication_date", video.publication_date)
    _sub(node, VIDEO_NS, "family_friendly", "yes")
    _sub(node, VIDEO_NS, "requires_subscription", "no")
    _sub(node, VIDEO_NS, "uploader", video.uploader, info=video.uploader_info)
    _sub(node, VIDEO_NS, "live", "no")
    if video.tag:
        _sub(node, VIDEO_NS, "tag", video.tag)


def _tostring(root: etree._Element) -> str:
    return etree.tostring(
        root, xml_declaration=True, encoding="UTF-8", pretty_print=True
    ).decode("utf-8")


def render_urlset(urls: Sequence[SitemapUrl], comments: Iterable[str] = ()) -> str:
    """Serialise *urls* as a ``<urlset>`` document.

    Extension namespaces (news, image, video) are declared only when at least
    one entry uses them.
    """
    nsmap = {None: SITEMAP_NS}
    if any(u.news for u in urls):
        nsmap["news"] = NEWS_NS
    if any(u.images for u in urls):
        nsmap["image"] = IMAGE_NS
    if any(u.videos for u in urls):
        nsmap["video"] = VIDEO_NS

    root = etree.Element(f"{{{SITEMAP_NS}}}urlset", nsmap=nsmap)
    for comment in comments:
        # "--" is not allowed inside an XML comment
        text = _DASHES_RE.sub(lambda m: " ".join(m.group()), xml_safe(comment))
        root.append(etree.Comment(f" {text} "))

    for url in urls:
        node = _sub(root, SITEMAP_NS, "url")
        _sub(node, SITEMAP_NS, "loc", url.loc)
        if url.lastmod:
            _sub(node, SITEMAP_NS, "lastmod", url.lastmod)
        if url.changefreq:
            _sub(node, SITEMAP_NS, "changefreq", url.changefreq)
        if url.priority:
            _sub(node, SITEMAP_NS, "priority", url.priority)
        if url.news:
            _append_news(node, url.news)
        for image in url.images:
            _append_image(node, image)
        for video in url.videos:
            _append_video(node, video)

    return _tostring(root)


def render_sitemap_index(entries: Iterable[Tuple[str, str]]) -> str:
    """Serialise ``(loc, lastmod)`` pairs as a ``<sitemapindex>`` document."""
    root = etree.Element(f"{{{SITEMAP_NS}}}sitemapindex", nsmap={None: SITEMAP_NS})
    for loc, lastmod in entries:
        node = _sub(root, SITEMAP_NS, "sitemap")
        _sub(node, SITEMAP_NS, "loc", loc)
        _sub(node, SITEMAP_NS, "lastmod", lastmod)
    return _tostring(root)


def parse_sitemap_locs(xml_text: str) -> List[str]:
    """Extract all ``<loc>`` values from a sitemap or sitemap-index XML."""
    urls: List[str] = []
    try:
        root = etree.fromstring(xml_text.encode("utf-8"))
    except etree.XMLSyntaxError as exc:
        logger.warning("Failed to parse sitemap XML: %s", exc)
        return urls
    for elem in root.iter(f"{{{SITEMAP_NS}}}loc"):
        if elem.text:
            urls.append(elem.text.strip())
    return urls
