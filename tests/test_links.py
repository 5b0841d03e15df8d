"""
Tests for share link detection and content ids.
"""

import pytest

from douyin_pipeline.links import extract_content_id, extract_share_link


class TestExtractShareLink:
    """Test cases for extract_share_link."""

    def test_short_link_in_share_text(self):
        text = "7.43 复制打开抖音，看看【猫猫的作品】 https://v.douyin.com/abcDEF1/ a@B.xx 12/30 Kjv:/"
        link = extract_share_link(text)

        assert link is not None
        assert link.url == "https://v.douyin.com/abcDEF1/"
        assert link.content_id == "abcDEF1"

    def test_short_link_without_trailing_slash(self):
        link = extract_share_link("look https://v.douyin.com/abcDEF1")
        assert link.url == "https://v.douyin.com/abcDEF1"
        assert link.content_id == "abcDEF1"

    def test_trailing_punctuation_is_stripped(self):
        link = extract_share_link("see https://v.douyin.com/abcDEF1.")
        assert link.url == "https://v.douyin.com/abcDEF1"

    @pytest.mark.parametrize("url,content_id", [
        ("https://www.douyin.com/video/7301234567890123456", "7301234567890123456"),
        ("https://m.douyin.com/share/video/7301234567890123456/?region=CN", "7301234567890123456"),
        ("https://www.iesdouyin.com/share/video/7301234567890123456/", "7301234567890123456"),
        ("https://www.douyin.com/jingxuan?modal_id=7301234567890123456", "7301234567890123456"),
        ("http://v.douyin.com/iRNBho6u/", "iRNBho6u"),
    ])
    def test_link_shapes(self, url, content_id):
        link = extract_share_link(f"shared: {url} enjoy")
        assert link is not None
        assert link.content_id == content_id

    def test_same_link_gives_same_id(self):
        text = "https://v.douyin.com/abcDEF1/"
        assert extract_share_link(text) == extract_share_link(text)

    def test_share_link_without_id(self):
        link = extract_share_link("https://www.douyin.com/user/self")
        assert link is not None
        assert link.content_id is None

    @pytest.mark.parametrize("text", [
        None,
        "",
        "no link here",
        "https://www.tiktok.com/@user/video/123456789",
        "https://v.douyin.com.evil.example/abc",
        "https://notdouyin.example.com/video/1",
    ])
    def test_no_match(self, text):
        assert extract_share_link(text) is None


def test_content_id_rejects_unsafe_segment():
    assert extract_content_id("https://v.douyin.com/%2e%2e/") is None
