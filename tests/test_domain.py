"""Tests for the hostname helpers behind credential matching."""

import pytest

from vault.services.domain import base_domain, normalize_host, parse_hostname, url_matches_host


class TestNormalizeHost:

    def test_lowercases_and_strips_www(self):
        """A single leading www. is removed after lower-casing."""
        assert normalize_host("WWW.Google.com") == "google.com"

    def test_only_one_www_removed(self):
        """Only the first literal www. label goes."""
        assert normalize_host("www.www.example.com") == "www.example.com"

    def test_www_inside_host_kept(self):
        """www only counts as a prefix."""
        assert normalize_host("mywww.example.com") == "mywww.example.com"


class TestParseHostname:

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("https://Mail.Google.com/inbox?x=1", "mail.google.com"),
            ("http://example.com:8080/login", "example.com"),
            ("mail.google.com/inbox", "mail.google.com"),
            ("www.google.com", "google.com"),
            ("localhost", "localhost"),
        ],
    )
    def test_hosts_and_urls(self, value, expected):
        """Bare hosts, schemeless URLs and full URLs all reduce to a hostname."""
        assert parse_hostname(value) == expected

    def test_unparseable_falls_back(self):
        """A value urlsplit cannot handle comes back normalised, not raised."""
        assert parse_hostname("http://[::1") == "http://[::1"


class TestBaseDomain:

    def test_last_two_labels(self):
        """Subdomains collapse to the last two labels."""
        assert base_domain("accounts.google.com") == "google.com"
        assert base_domain("mail.google.com") == "google.com"

    def test_short_hosts(self):
        """Single-label and two-label hosts are their own base."""
        assert base_domain("localhost") == "localhost"
        assert base_domain("google.com") == "google.com"

    def test_multi_label_suffix_over_matches(self):
        """Not public-suffix aware: example.co.uk reduces to co.uk."""
        assert base_domain("example.co.uk") == "co.uk"

    def test_www_stripped_first(self):
        """www.example.com and example.com share a base."""
        assert base_domain("www.example.com") == "example.com"


class TestUrlMatchesHost:

    def test_subdomains_match_each_other(self):
        """Stored mail.google.com URL matches accounts.google.com."""
        assert url_matches_host("https://mail.google.com/u/0", "accounts.google.com")

    def test_schemeless_stored_url(self):
        """Stored values without a scheme are given https:// before parsing."""
        assert url_matches_host("google.com/signin", "google.com")

    def test_suffix_lookalike_rejected(self):
        """notgoogle.com contains google.com but is another site."""
        assert not url_matches_host("https://notgoogle.com", "google.com")

    def test_garbage_never_raises(self):
        """Malformed stored values simply fail to match."""
        assert not url_matches_host("http://[broken", "google.com")
        assert not url_matches_host("", "google.com")
