"""Session cookie handling for DTEK requests.

DTEK (behind Incapsula) hands out a dozen cookies per visit; only a handful
are needed to replay an authenticated AJAX call, and sending the rest has
been observed to trigger the bot challenge.
"""

import re
from collections.abc import Iterable


def _keep_pattern(region: str) -> re.Pattern[str]:
    code = re.escape(region)
    return re.compile(
        rf"^(dtek-{code}|_csrf-dtek-{code}|_language|visid_incap_|incap_ses_|incap_wrt_)"
    )


class CookieJar:
    """Name -> value cookie store fed from Set-Cookie headers."""

    def __init__(self) -> None:
        self._cookies: dict[str, str] = {}

    @classmethod
    def from_header(cls, header: str) -> "CookieJar":
        """Rebuild a jar from a ``"name=value; name2=value2"`` string."""
        jar = cls()
        jar.absorb(part for part in header.split(";") if part.strip())
        return jar

    def absorb(self, set_cookie_headers: Iterable[str]) -> None:
        """Store cookies from raw Set-Cookie header values.

        Only the leading ``name=value`` pair is kept, attributes are dropped.
        Entries without a name are ignored; a repeated name overwrites.
        """
        for header in set_cookie_headers:
            pair = header.split(";", 1)[0]
            name, sep, value = pair.partition("=")
            name = name.strip()
            if not sep or not name:
                continue
            self._cookies[name] = value.strip()

    def header(self) -> str:
        """All cookies as a Cookie header value."""
        return "; ".join(f"{name}={value}" for name, value in self._cookies.items())

    def filtered(self, region: str) -> str:
        """Cookie header value restricted to what a region's AJAX endpoint needs."""
        keep = _keep_pattern(region)
        return "; ".join(
            f"{name}={value}" for name, value in self._cookies.items() if keep.match(name)
        )

    def get(self, name: str) -> str | None:
        return self._cookies.get(name)

    def clear(self) -> None:
        self._cookies.clear()

    def __len__(self) -> int:
        return len(self._cookies)

    def __repr__(self) -> str:
        return f"CookieJar(names={sorted(self._cookies)})"
