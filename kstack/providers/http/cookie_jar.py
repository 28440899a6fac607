"""Minimal cookie jar for the fetch client.

The platform hands out session cookies on first contact and starts
answering 429 when a session is throttled; the fetch client then drops the
whole jar to start a fresh session.  httpx's own cookie store is not used
so that the jar is the single place cookie state lives.

Reads are best-effort snapshots: entries may be added or evicted between a
lookup and the request it decorates, which is harmless for this use.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from email.utils import parsedate_to_datetime


@dataclass(frozen=True)
class CookieEntry:
    """One stored cookie.  ``expires`` is a UNIX timestamp, ``None`` for session cookies."""

    name: str
    value: str
    domain: str
    expires: float | None = None
    same_site: str | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires is not None and self.expires <= now

    def matches_host(self, host: str) -> bool:
        if (self.same_site or "").lower() == "none":
            return True
        host = host.lower()
        return host == self.domain or host.endswith("." + self.domain)


class CookieJar:
    """Cookie store keyed by ``(name, domain)``.

    Parameters
    ----------
    clock:
        Returns the current UNIX time; injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[tuple[str, str], CookieEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> list[CookieEntry]:
        with self._lock:
            return list(self._entries.values())

    def set(self, entry: CookieEntry) -> None:
        with self._lock:
            self._entries[(entry.name, entry.domain)] = entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cookies_for(self, host: str) -> list[CookieEntry]:
        """Return live cookies to send to *host*, evicting expired ones."""
        now = self._clock()
        selected: list[CookieEntry] = []
        with self._lock:
            for key, entry in list(self._entries.items()):
                if entry.is_expired(now):
                    del self._entries[key]
                    continue
                if entry.matches_host(host):
                    selected.append(entry)
        return selected

    def header_for(self, host: str) -> str | None:
        """Render the ``Cookie`` request header value, or ``None`` when empty."""
        cookies = self.cookies_for(host)
        if not cookies:
            return None
        return "; ".join(f"{c.name}={c.value}" for c in cookies)

    def update_from_headers(self, set_cookie_headers: Iterable[str], host: str) -> None:
        """Merge raw ``Set-Cookie`` header values received from *host*."""
        for header in set_cookie_headers:
            entry = parse_set_cookie(header, host, now=self._clock())
            if entry is None:
                continue
            if entry.is_expired(self._clock()):
                with self._lock:
                    self._entries.pop((entry.name, entry.domain), None)
            else:
                self.set(entry)


def parse_set_cookie(header: str, host: str, now: float) -> CookieEntry | None:
    """Parse one ``Set-Cookie`` value.  Returns ``None`` for malformed input.

    ``Max-Age`` wins over ``Expires``; a cookie without ``Domain`` is bound
    to the host that set it.
    """
    parts = [p.strip() for p in header.split(";")]
    if not parts or "=" not in parts[0]:
        return None
    name, value = parts[0].split("=", 1)
    name = name.strip()
    if not name:
        return None

    attrs: dict[str, str] = {}
    for part in parts[1:]:
        if not part:
            continue
        key, _, attr_value = part.partition("=")
        attrs[key.strip().lower()] = attr_value.strip()

    expires: float | None = None
    if attrs.get("max-age"):
        try:
            expires = now + int(attrs["max-age"])
        except ValueError:
            expires = None
    elif attrs.get("expires"):
        try:
            expires = parsedate_to_datetime(attrs["expires"]).timestamp()
        except (TypeError, ValueError):
            expires = None

    domain = (attrs.get("domain") or host).lstrip(".").lower()
    return CookieEntry(
        name=name,
        value=value.strip(),
        domain=domain,
        expires=expires,
        same_site=attrs.get("samesite") or None,
    )
