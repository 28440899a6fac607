"""Unit tests for the fetch client's cookie jar."""

from __future__ import annotations

from kstack.providers.http.cookie_jar import CookieEntry, CookieJar, parse_set_cookie

NOW = 1_700_000_000.0


class _Clock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


# ======================================================================
# Set-Cookie parsing
# ======================================================================


class TestParseSetCookie:
    def test_max_age(self) -> None:
        entry = parse_set_cookie("sid=abc; Max-Age=60; Path=/", "example.com", NOW)
        assert entry == CookieEntry(name="sid", value="abc", domain="example.com", expires=NOW + 60)

    def test_expires_date(self) -> None:
        entry = parse_set_cookie("sid=abc; Expires=Wed, 21 Oct 2015 07:28:00 GMT", "example.com", NOW)
        assert entry is not None
        assert entry.expires == 1445412480

    def test_max_age_wins_over_expires(self) -> None:
        entry = parse_set_cookie("a=1; Expires=Wed, 21 Oct 2015 07:28:00 GMT; Max-Age=10", "h.com", NOW)
        assert entry is not None
        assert entry.expires == NOW + 10

    def test_domain_leading_dot_is_stripped(self) -> None:
        entry = parse_set_cookie("a=1; Domain=.Substack.com", "x.substack.com", NOW)
        assert entry is not None
        assert entry.domain == "substack.com"

    def test_session_cookie_has_no_expiry(self) -> None:
        entry = parse_set_cookie("a=1; HttpOnly; Secure", "h.com", NOW)
        assert entry is not None
        assert entry.expires is None

    def test_value_may_contain_equals(self) -> None:
        entry = parse_set_cookie("token=a=b=c", "h.com", NOW)
        assert entry is not None
        assert entry.value == "a=b=c"

    def test_malformed_headers(self) -> None:
        assert parse_set_cookie("novalue", "h.com", NOW) is None
        assert parse_set_cookie("=orphan", "h.com", NOW) is None
        assert parse_set_cookie("", "h.com", NOW) is None


# ======================================================================
# Jar behaviour
# ======================================================================


class TestCookieJar:
    def test_header_for_matching_hosts(self) -> None:
        jar = CookieJar(clock=_Clock())
        jar.update_from_headers(["a=1; Domain=substack.com", "b=2"], "news.substack.com")

        assert jar.header_for("substack.com") == "a=1"
        assert jar.header_for("other.substack.com") == "a=1"
        assert jar.header_for("news.substack.com") == "a=1; b=2"
        assert jar.header_for("example.org") is None

    def test_same_site_none_is_sent_everywhere(self) -> None:
        jar = CookieJar(clock=_Clock())
        jar.update_from_headers(["x=1; SameSite=None; Secure"], "a.com")
        assert jar.header_for("b.org") == "x=1"

    def test_expired_entries_are_evicted(self) -> None:
        clock = _Clock()
        jar = CookieJar(clock=clock)
        jar.update_from_headers(["short=1; Max-Age=5", "long=2; Max-Age=500"], "h.com")
        assert len(jar) == 2

        clock.now += 10
        assert jar.header_for("h.com") == "long=2"
        assert len(jar) == 1

    def test_max_age_zero_deletes_cookie(self) -> None:
        jar = CookieJar(clock=_Clock())
        jar.update_from_headers(["sid=1"], "h.com")
        jar.update_from_headers(["sid=; Max-Age=0"], "h.com")
        assert len(jar) == 0

    def test_same_name_replaces_value(self) -> None:
        jar = CookieJar(clock=_Clock())
        jar.update_from_headers(["sid=1"], "h.com")
        jar.update_from_headers(["sid=2"], "h.com")
        assert jar.header_for("h.com") == "sid=2"

    def test_clear(self) -> None:
        jar = CookieJar(clock=_Clock())
        jar.update_from_headers(["a=1", "b=2"], "h.com")
        jar.clear()
        assert len(jar) == 0
        assert jar.entries() == []
