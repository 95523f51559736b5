"""HTTP client for the two DTEK endpoints.

* GET  {base}/ua/shutdowns  - directory page, hands out session cookies
* POST {base}/ua/ajax       - getHomeNum, per-street building statuses;
                              needs the page's CSRF token and cookies

Every call opens its own httpx client so httpx never replays cookies on its
own: the Cookie header is always the CookieJar's filtered rendering.
"""

import json
from dataclasses import dataclass

import httpx
from pydantic import ValidationError as PydanticValidationError

from src.dtek.config import DtekConfig, get_config
from src.dtek.cookies import CookieJar
from src.dtek.errors import NetworkError, ParseError, describe_exception
from src.dtek.logging import get_logger
from src.dtek.models import StatusResponse
from src.dtek.regions import Region
from src.dtek.result import Err, Ok, Result

log = get_logger(__name__)

_SNIPPET_LIMIT = 200


@dataclass
class DirectoryPage:
    html: str
    cookies: CookieJar


def _set_cookie_headers(response: httpx.Response) -> list[str]:
    """Set-Cookie values from a response and every redirect hop before it."""
    headers: list[str] = []
    for hop in [*response.history, response]:
        headers.extend(hop.headers.get_list("set-cookie"))
    return headers


class UpstreamClient:
    """Talks to one region's DTEK site.

    Args:
        region: Region to query.
        config: Configuration (defaults to the process-wide singleton).
        transport: Optional httpx transport, e.g. httpx.MockTransport in tests.
    """

    def __init__(
        self,
        region: Region,
        *,
        config: DtekConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.region = region
        self.config = config or get_config()
        self._transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(self.config.request_timeout_seconds),
            follow_redirects=True,
        )

    def _identity_headers(self) -> dict[str, str]:
        return {
            "user-agent": self.config.user_agent,
            "accept-language": "en",
            "cache-control": "no-cache",
            "pragma": "no-cache",
        }

    async def fetch_directory_page(self) -> Result[DirectoryPage, NetworkError]:
        """Load the shutdowns page with a fresh cookie jar.

        Returns:
            Ok(DirectoryPage) on 2xx, Err(NetworkError) otherwise.
        """
        url = self.region.template_url
        headers = {
            **self._identity_headers(),
            "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }
        cookies = CookieJar()

        try:
            async with self._http() as http:
                response = await http.get(url, headers=headers)
        except httpx.HTTPError as e:
            log.warning("directory_fetch_failed", url=url, error=str(e), type=type(e).__name__)
            return Err(
                NetworkError(
                    message="Failed to connect to DTEK server",
                    url=url,
                    cause=describe_exception(e),
                )
            )

        cookies.absorb(_set_cookie_headers(response))

        if not response.is_success:
            log.warning("directory_fetch_http_error", url=url, status=response.status_code)
            return Err(
                NetworkError(
                    message=f"DTEK server returned HTTP {response.status_code}",
                    url=url,
                    http_status=response.status_code,
                )
            )

        log.debug("directory_fetched", url=url, bytes=len(response.content), cookies=len(cookies))
        return Ok(DirectoryPage(html=response.text, cookies=cookies))

    async def fetch_building_statuses(
        self,
        *,
        location: str,
        street: str,
        update_fact: str,
        token: str,
        cookies: CookieJar,
    ) -> Result[StatusResponse, NetworkError | ParseError]:
        """Query building statuses for one street.

        New cookies from the response are absorbed into ``cookies`` in place.

        Returns:
            Ok(StatusResponse), Err(NetworkError) for transport failures and
            non-2xx, Err(ParseError) for a body that is not the known JSON shape.
        """
        url = self.region.ajax_url
        form = {
            "method": "getHomeNum",
            "data[0][name]": "city",
            "data[0][value]": location,
            "data[1][name]": "street",
            "data[1][value]": street,
            "data[2][name]": "updateFact",
            "data[2][value]": update_fact,
        }
        headers = {
            **self._identity_headers(),
            "accept": "application/json, text/javascript, */*; q=0.01",
            "x-requested-with": "XMLHttpRequest",
            "x-csrf-token": token,
            "origin": self.region.url,
            "referer": self.region.template_url,
            "cookie": cookies.filtered(self.region.code),
        }

        try:
            async with self._http() as http:
                response = await http.post(url, data=form, headers=headers)
        except httpx.HTTPError as e:
            log.warning("status_fetch_failed", url=url, error=str(e), type=type(e).__name__)
            return Err(
                NetworkError(
                    message="Failed to fetch building statuses from DTEK",
                    url=url,
                    cause=describe_exception(e),
                )
            )

        cookies.absorb(_set_cookie_headers(response))

        if not response.is_success:
            log.warning("status_fetch_http_error", url=url, status=response.status_code)
            return Err(
                NetworkError(
                    message=f"DTEK API returned HTTP {response.status_code}",
                    url=url,
                    http_status=response.status_code,
                )
            )

        text = response.text
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            return Err(
                ParseError(
                    message="Failed to parse DTEK API response as JSON",
                    parse_kind="json",
                    expected="Valid JSON response",
                    found=text if len(text) <= _SNIPPET_LIMIT else f"{text[:_SNIPPET_LIMIT]}...",
                    cause=describe_exception(e),
                )
            )

        try:
            status = StatusResponse.model_validate(raw)
        except PydanticValidationError as e:
            log.error("status_response_invalid", url=url, errors=e.errors(include_url=False))
            return Err(
                ParseError(
                    message="DTEK API returned invalid data structure",
                    parse_kind="json",
                    expected="StatusResponse structure",
                    found=str(e.errors(include_url=False, include_input=False)),
                )
            )

        if not status.result:
            log.warning("status_result_false", url=url, location=location, street=street)
        return Ok(status)
