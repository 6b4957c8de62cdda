"""Tests for domain extraction and normalization."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.commentguard.domains import (
    email_domain,
    is_disposable_domain,
    is_valid_email,
    normalize_domain,
    url_domain,
)


class TestNormalizeDomain:
    def test_strips_www_case_and_trailing_dot(self):
        assert normalize_domain("WWW.Example.com.") == "example.com"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("example.com", "example.com"),
            ("  Example.COM  ", "example.com"),
            ("www.www.example.com", "example.com"),
            ("example.com..", "example.com"),
            ("www.", "www"),
            ("wwwexample.com", "wwwexample.com"),
            ("", ""),
        ],
    )
    def test_examples(self, raw, expected):
        assert normalize_domain(raw) == expected

    def test_non_string_input(self):
        assert normalize_domain(None) == ""

    @given(st.text())
    def test_idempotent(self, domain):
        once = normalize_domain(domain)
        assert normalize_domain(once) == once

    @given(st.from_regex(r"(www\.|WWW\.)*[a-zA-Z0-9-]{1,12}\.[a-zA-Z]{2,6}\.?", fullmatch=True))
    def test_result_has_no_www_prefix_or_trailing_dot(self, domain):
        normalized = normalize_domain(domain)
        assert not normalized.startswith("www.")
        assert not normalized.endswith(".")
        assert normalized == normalized.lower()


class TestEmailDomain:
    @pytest.mark.parametrize(
        "email,expected",
        [
            ("bob@Example.COM", "example.com"),
            ("first.last+tag@mail.example.org", "mail.example.org"),
            ("weird@name@host.io", "host.io"),
            ("no-at-sign", ""),
            ("", ""),
        ],
    )
    def test_extraction(self, email, expected):
        assert email_domain(email) == expected

    @pytest.mark.parametrize(
        "email,valid",
        [
            ("bob@example.com", True),
            ("bob@localhost", False),
            ("bob example@example.com", False),
            ("@example.com", False),
            ("", False),
        ],
    )
    def test_is_valid_email(self, email, valid):
        assert is_valid_email(email) is valid


class TestUrlDomain:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://WWW.Example.com/path?q=1", "www.example.com"),
            ("http://user:pw@host.example:8080/", "host.example"),
            ("example.org/about", "example.org"),
            ("www.example.net", "www.example.net"),
            ("   ", ""),
            ("", ""),
        ],
    )
    def test_extraction(self, url, expected):
        assert url_domain(url) == expected

    @given(st.text())
    def test_never_raises(self, url):
        assert isinstance(url_domain(url), str)


class TestDisposableDomains:
    def test_known_disposable(self):
        assert is_disposable_domain("mailinator.com")
        assert is_disposable_domain("WWW.Mailinator.com.")

    def test_regular_domain(self):
        assert not is_disposable_domain("example.com")
