"""Tests for heuristic pre-filters."""

import pytest

from src.commentguard.classifier.heuristics import check, contains_link, count_links
from src.commentguard.models import Action, Candidate


class TestLinkHeuristic:
    def test_too_many_links(self, make_config):
        candidate = Candidate(text="Buy cheap watches http://a.co http://b.co http://c.co")

        match = check(candidate, make_config(max_links=2))

        assert match.rule == "links"
        assert match.reason == "Too many links (3)"
        assert match.action == Action.SPAM

    def test_at_limit_passes(self, make_config):
        candidate = Candidate(text="See http://a.co and HTTPS://b.co")

        assert check(candidate, make_config(max_links=2)) is None

    def test_zero_disables_link_check(self, make_config):
        candidate = Candidate(text=" ".join(f"http://x{i}.co" for i in range(10)))

        assert check(candidate, make_config(max_links=0)) is None

    def test_match_uses_auto_action(self, make_config):
        candidate = Candidate(text="http://a http://b")

        match = check(candidate, make_config(max_links=1, auto_action="hold"))

        assert match.action == Action.HOLD

    def test_count_links(self):
        assert count_links("http://a https://b HTTP://c ftp://d www.e.com") == 3
        assert count_links("") == 0

    def test_contains_link_catches_bare_www(self):
        assert contains_link("visit www.example.com")
        assert contains_link("https://example.com")
        assert not contains_link("no links at all")


class TestContentBlacklist:
    def test_case_insensitive_substring(self, make_config):
        candidate = Candidate(text="Best ONLINE Casino bonuses here")

        match = check(candidate, make_config(content_blacklist="viagra\nonline casino"))

        assert match.rule == "content_blacklist"
        assert match.reason == "Content matched blacklist: online casino"

    def test_links_checked_before_blacklist(self, make_config):
        candidate = Candidate(text="casino http://a http://b http://c")

        match = check(candidate, make_config(content_blacklist="casino"))

        assert match.rule == "links"

    def test_blacklist_applies_even_when_author_checks_disabled(self, make_config):
        candidate = Candidate(text="casino")

        match = check(candidate, make_config(content_blacklist="casino", check_author_fields=False))

        assert match.rule == "content_blacklist"


class TestAuthorFields:
    def test_author_name_blacklist(self, make_config):
        candidate = Candidate(text="Nice post", author_name="Best SEO Services Ltd")

        match = check(candidate, make_config(author_name_blacklist="seo services"))

        assert match.rule == "author_name"
        assert match.reason == "Author name matched blacklist: seo services"

    def test_email_domain_blacklist(self, make_config):
        candidate = Candidate(text="Nice post", author_email="bob@WWW.Spammy.example")

        match = check(candidate, make_config(email_domain_blacklist="spammy.example"))

        assert match.rule == "email_domain"
        assert match.reason == "Email domain blacklisted: spammy.example"

    def test_disposable_email(self, make_config):
        candidate = Candidate(text="Nice post", author_email="throwaway@mailinator.com")

        match = check(candidate, make_config())

        assert match.rule == "disposable_email"
        assert match.reason == "Disposable email domain: mailinator.com"

    def test_disposable_check_can_be_disabled(self, make_config):
        candidate = Candidate(text="Nice post", author_email="throwaway@mailinator.com")

        assert check(candidate, make_config(disposable_email_check=False)) is None

    def test_invalid_email_ignored(self, make_config):
        candidate = Candidate(text="Nice post", author_email="not-an-email mailinator.com")

        assert check(candidate, make_config()) is None

    def test_url_domain_blacklist(self, make_config):
        candidate = Candidate(text="Nice post", author_url="shop.example/cheap")

        match = check(candidate, make_config(url_domain_blacklist="www.shop.example"))

        assert match.rule == "url_domain"
        assert match.reason == "Author URL domain blacklisted: shop.example"

    def test_author_checks_disabled(self, make_config):
        candidate = Candidate(
            text="Nice post",
            author_name="SEO",
            author_email="a@mailinator.com",
            author_url="http://bad.example",
        )
        config = make_config(
            check_author_fields=False,
            author_name_blacklist="seo",
            url_domain_blacklist="bad.example",
        )

        assert check(candidate, config) is None

    @pytest.mark.parametrize(
        "overrides,expected_rule",
        [
            ({"author_name_blacklist": "dana"}, "author_name"),
            ({"email_domain_blacklist": "example.org"}, "email_domain"),
            ({"url_domain_blacklist": "dana.example.org"}, "url_domain"),
        ],
    )
    def test_first_match_wins_in_order(self, make_config, sample_candidate, overrides, expected_rule):
        config = make_config(
            **{
                "author_name_blacklist": "nobody",
                "email_domain_blacklist": "nowhere.example",
                "url_domain_blacklist": "dana.example.org",
                **overrides,
            }
        )

        assert check(sample_candidate, config).rule == expected_rule


class TestNoMatch:
    def test_clean_candidate(self, config, sample_candidate):
        assert check(sample_candidate, config) is None
