"""Public URL builders for every page type on the site."""

from typing import Optional

from app.services.content import UPSC_SECTION, WEB3_SECTION

SITEMAP_PATHS = {
    "main": "/sitemap.xml",
    "index": "/sitemap-index.xml",
    "web3": "/web3-sitemap.xml",
    "upsc": "/upsc-sitemap.xml",
    "tools": "/sitemap-tools.xml",
    "webstories": "/web-stories-sitemap.xml",
    "videos": "/videos-sitemap.xml",
    "news": "/news-sitemap.xml",
}


def sitemap_url(base_url: str, kind: str) -> str:
    return f"{base_url}{SITEMAP_PATHS[kind]}"


def article_url(base_url: str, slug: str) -> str:
    return f"{base_url}/article/{slug}"


def category_url(base_url: str, slug: str) -> str:
    return f"{base_url}/category/{slug}"


def subcategory_url(base_url: str, parent_slug: str, slug: str) -> str:
    return f"{base_url}/{parent_slug}/{slug}"


def _story_category(category: Optional[str]) -> str:
    return category.lower() if category else "general"


def web_stories_hub_url(base_url: str) -> str:
    return f"{base_url}/web-stories"


def web_story_url(base_url: str, category: Optional[str], slug: str) -> str:
    return f"{base_url}/webstories/{_story_category(category)}/{slug}"


def amp_story_url(base_url: str, category: Optional[str], slug: str) -> str:
    return f"{base_url}/amp-story/{_story_category(category)}/{slug}"


def upsc_url(base_url: str, *parts: str) -> str:
    return "/".join([f"{base_url}/{UPSC_SECTION}", *parts])


def web3_url(base_url: str, *parts: str) -> str:
    return "/".join([f"{base_url}/{WEB3_SECTION}", *parts])


def job_url(base_url: str, slug: str) -> str:
    return f"{base_url}/private-jobs/{slug}"
