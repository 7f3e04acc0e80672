"""Tests for the sitemap XML codec in app.services.sitemap."""

from datetime import date, datetime, timedelta, timezone

from lxml import etree

from app.services.sitemap import (
    IMAGE_NS,
    NEWS_NS,
    SITEMAP_NS,
    VIDEO_NS,
    ImageInfo,
    NewsInfo,
    SitemapUrl,
    VideoInfo,
    format_date,
    format_datetime,
    parse_sitemap_locs,
    render_sitemap_index,
    render_urlset,
)

_NS = {"s": SITEMAP_NS, "news": NEWS_NS, "image": IMAGE_NS, "video": VIDEO_NS}


def _parse(xml: str) -> etree._Element:
    return etree.fromstring(xml.encode("utf-8"))


class TestDates:
    def test_format_date_uses_utc_day(self):
        value = datetime(2024, 5, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert format_date(value, date(2020, 1, 1)) == "2024-05-02"

    def test_format_date_falls_back_to_today(self):
        assert format_date(None, date(2024, 6, 9)) == "2024-06-09"

    def test_format_datetime_treats_naive_as_utc(self):
        assert format_datetime(datetime(2024, 5, 1, 8, 30)) == "2024-05-01T08:30:00+00:00"


class TestRenderUrlset:
    def test_plain_urlset(self):
        xml = render_urlset([SitemapUrl("https://x.test/", "2024-05-01", "daily", "1.0")])
        assert xml.startswith("<?xml")
        root = _parse(xml)
        assert root.tag == f"{{{SITEMAP_NS}}}urlset"
        assert root.xpath("//s:url/s:loc/text()", namespaces=_NS) == ["https://x.test/"]
        assert root.xpath("//s:changefreq/text()", namespaces=_NS) == ["daily"]
        assert root.xpath("//s:priority/text()", namespaces=_NS) == ["1.0"]

    def test_extension_namespaces_only_when_used(self):
        xml = render_urlset([SitemapUrl("https://x.test/a")])
        assert NEWS_NS not in xml
        assert IMAGE_NS not in xml
        assert VIDEO_NS not in xml

    def test_optional_elements_are_omitted(self):
        root = _parse(render_urlset([SitemapUrl("https://x.test/a")]))
        assert root.xpath("//s:lastmod", namespaces=_NS) == []
        assert root.xpath("//s:priority", namespaces=_NS) == []

    def test_news_and_image_blocks(self):
        entry = SitemapUrl(
            "https://x.test/article/a",
            news=NewsInfo("Pub", "en", "2024-05-01T00:00:00+00:00", "Title & more", "a, b"),
            images=(ImageInfo("https://x.test/i.jpg", title="T", caption="C"),),
        )
        xml = render_urlset([entry])
        root = _parse(xml)
        assert root.xpath("//news:publication/news:name/text()", namespaces=_NS) == ["Pub"]
        assert root.xpath("//news:title/text()", namespaces=_NS) == ["Title & more"]
        assert root.xpath("//news:keywords/text()", namespaces=_NS) == ["a, b"]
        assert root.xpath("//image:image/image:caption/text()", namespaces=_NS) == ["C"]
        # Text is escaped in the serialised document
        assert "Title &amp; more" in xml

    def test_video_block(self):
        video = VideoInfo(
            thumbnail_loc="https://i.ytimg.com/vi/abc/hqdefault.jpg",
            title="Clip",
            description="Desc",
            content_loc="https://youtu.be/abc",
            player_loc="https://www.youtube.com/embed/abc",
            publication_date="2024-05-01T00:00:00+00:00",
            uploader="Pub",
            uploader_info="https://x.test",
        )
        root = _parse(render_urlset([SitemapUrl("https://x.test/", videos=(video,))]))
        player = root.xpath("//video:player_loc", namespaces=_NS)[0]
        assert player.get("allow_embed") == "yes"
        assert root.xpath("//video:uploader/@info", namespaces=_NS) == ["https://x.test"]
        assert root.xpath("//video:family_friendly/text()", namespaces=_NS) == ["yes"]
        assert root.xpath("//video:tag", namespaces=_NS) == []

    def test_comments_are_sanitised(self):
        xml = render_urlset([], comments=["Generated -- today"])
        assert "<!-- Generated - - today -->" in xml
        _parse(xml)

    def test_runs_of_dashes_in_comments(self):
        xml = render_urlset([], comments=["a---b", "ends with -"])
        assert "<!-- a- - -b -->" in xml
        assert "<!-- ends with - -->" in xml
        _parse(xml)

    def test_control_characters_are_dropped(self):
        entry = SitemapUrl(
            "https://x.test/article/budget",
            news=NewsInfo("Pub\x00", "en", "2024-05-01T00:00:00+00:00", "Budget\x0b2026", "tax\x1f"),
            images=(ImageInfo("https://x.test/i.jpg", caption="Line\x08break"),),
        )
        root = _parse(render_urlset([entry]))
        assert root.xpath("//news:title/text()", namespaces=_NS) == ["Budget2026"]
        assert root.xpath("//news:name/text()", namespaces=_NS) == ["Pub"]
        assert root.xpath("//news:keywords/text()", namespaces=_NS) == ["tax"]
        assert root.xpath("//image:caption/text()", namespaces=_NS) == ["Linebreak"]

    def test_control_characters_dropped_from_attributes(self):
        video = VideoInfo(
            thumbnail_loc="https://i.ytimg.com/vi/abc/hqdefault.jpg",
            title="Clip\x0c",
            description="Desc",
            content_loc="https://youtu.be/abc",
            player_loc="https://www.youtube.com/embed/abc",
            publication_date="2024-05-01T00:00:00+00:00",
            uploader="Pub",
            uploader_info="https://x.test\x01",
        )
        root = _parse(render_urlset([SitemapUrl("https://x.test/", videos=(video,))]))
        assert root.xpath("//video:uploader/@info", namespaces=_NS) == ["https://x.test"]
        assert root.xpath("//video:title/text()", namespaces=_NS) == ["Clip"]


class TestSitemapIndex:
    def test_render_and_parse_locs(self):
        xml = render_sitemap_index(
            [("https://x.test/sitemap.xml", "2024-05-01"), ("https://x.test/news-sitemap.xml", "2024-05-01")]
        )
        root = _parse(xml)
        assert root.tag == f"{{{SITEMAP_NS}}}sitemapindex"
        assert parse_sitemap_locs(xml) == [
            "https://x.test/sitemap.xml",
            "https://x.test/news-sitemap.xml",
        ]

    def test_parse_invalid_xml_returns_empty(self):
        assert parse_sitemap_locs("<urlset><url>") == []
