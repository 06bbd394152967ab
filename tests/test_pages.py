"""
Page Server Tests
=================

Landing page, secondary page and not-found routing.
"""

import re

import pytest

from hol_demo.pages import (
    parse_stream_count,
    protocol_message,
    render_root_page,
    stream_src,
)


STREAM_IMG = re.compile(r"<img src='/cam\d+/\d+/stream\.mjpg'")


class TestParseStreamCount:
    """Tests for coercing the n parameter."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, 6),
            ("", 6),
            ("0", 6),
            ("-3", 6),
            ("abc", 6),
            ("3.5", 6),
            (" 3", 6),
            ("1_0", 6),
            ("1", 1),
            ("3", 3),
            ("+4", 4),
            ("10", 10),
            ("11", 10),
            ("99999999999999999999", 10),
        ],
    )
    def test_values(self, raw, expected):
        assert parse_stream_count(raw) == expected

    def test_custom_limits(self):
        assert parse_stream_count(None, default=2, maximum=4) == 2
        assert parse_stream_count("7", default=2, maximum=4) == 4


class TestRenderRootPage:
    """Tests for landing page HTML."""

    def test_image_count_and_sources(self):
        html = render_root_page(3, proto="HTTP/1.1", secure=False, http2=False, timestamp_ns=42)
        assert len(STREAM_IMG.findall(html)) == 3
        for i in range(3):
            assert f"src='/cam{i}/42/stream.mjpg'" in html

    def test_links_to_other_page(self):
        html = render_root_page(1, proto="HTTP/1.1", secure=False, http2=False)
        assert "href='/other-page'" in html
        assert "735583" in html

    def test_protocol_message_http1(self):
        message = protocol_message("HTTP/1.1", secure=False, http2=False)
        assert "HTTP/1.1" in message
        assert "<b>should</b> see the bug" in message

    def test_protocol_message_tls_http1(self):
        message = protocol_message("HTTP/1.1", secure=True, http2=False)
        assert "<b>should</b> see the bug" in message

    def test_protocol_message_http2(self):
        message = protocol_message("HTTP/2", secure=True, http2=True)
        assert "<b>should NOT</b>" in message

    def test_stream_src_pattern(self):
        assert stream_src(4, 123).endswith(".mjpg")
        assert stream_src(4, 123) == "/cam4/123/stream.mjpg"


class TestPageRoutes:
    """Tests for the HTTP surface of the page server."""

    def test_root_default(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert len(STREAM_IMG.findall(response.text)) == 6

    def test_root_n_3(self, client):
        response = client.get("/?n=3")
        assert response.status_code == 200
        assert len(STREAM_IMG.findall(response.text)) == 3

    @pytest.mark.parametrize("n, expected", [("0", 6), ("-1", 6), ("x", 6), ("10", 10), ("50", 10)])
    def test_root_n_coerced(self, client, n, expected):
        response = client.get("/", params={"n": n})
        assert len(STREAM_IMG.findall(response.text)) == expected

    def test_root_post_form(self, client):
        response = client.post("/", data={"n": "4"})
        assert response.status_code == 200
        assert len(STREAM_IMG.findall(response.text)) == 4

    def test_root_post_form_overrides_query(self, client):
        response = client.post("/?n=2", data={"n": "5"})
        assert len(STREAM_IMG.findall(response.text)) == 5

    def test_root_uses_configured_default(self, client, app_settings):
        app_settings.page.default_streams = 2
        response = client.get("/")
        assert len(STREAM_IMG.findall(response.text)) == 2

    def test_timestamps_bust_cache(self, client):
        first = client.get("/?n=1").text
        second = client.get("/?n=1").text
        assert STREAM_IMG.search(first).group(0) != STREAM_IMG.search(second).group(0)

    def test_plain_http_sees_bug(self, client):
        response = client.get("/")
        assert "You're using HTTP/1.1" in response.text
        assert "<b>should</b> see the bug" in response.text

    def test_badpath_not_found(self, client):
        response = client.get("/badpath")
        assert response.status_code == 404
        assert response.text == "404 page not found\n"

    def test_stream_suffix_before_query_not_found(self, client):
        response = client.get("/cam0/1/stream.mjpg?t=1")
        assert response.status_code == 404

    def test_other_page(self, client):
        response = client.get("/other-page")
        assert response.status_code == 200
        assert response.text == "<html><body>Some other page on the site."

    def test_other_page_any_method(self, client):
        response = client.post("/other-page")
        assert response.status_code == 200

    def test_unregistered_methods_served(self, client):
        """Methods outside the usual verbs still reach the handlers."""
        assert len(STREAM_IMG.findall(client.request("PROPFIND", "/").text)) == 6
        assert client.request("BREW", "/other-page").status_code == 200

        response = client.request("BREW", "/badpath")
        assert response.status_code == 404
        assert response.text == "404 page not found\n"
