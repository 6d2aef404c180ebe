"""Minimal Zulip API transport: one authenticated session per site."""
from typing import Optional, Dict, Any
import requests

from zulip_notify import settings
from zulip_notify.logging_conf import logger


BAD_EVENT_QUEUE_ID = "BAD_EVENT_QUEUE_ID"


class ZulipError(Exception):
    """Base class for errors raised while talking to a Zulip site."""


class TransportError(ZulipError):
    """Network failure or a response body that could not be decoded."""


class ApiError(ZulipError):
    """The server answered with a structured ``result: error`` body."""

    def __init__(self, payload: Dict[str, Any]):
        self.payload = dict(payload)
        super().__init__(f"api call failed: {self.payload}")

    @property
    def code(self) -> Optional[str]:
        code = self.payload.get("code")
        return code if isinstance(code, str) else None

    @property
    def msg(self) -> Optional[str]:
        return self.payload.get("msg")


class ZulipTransport:
    """Sends basic-auth requests to one site's API."""

    def __init__(self, site, session: Optional[requests.Session] = None, timeout=None):
        self.site = site
        self.timeout = timeout or (settings.CONNECT_TIMEOUT, settings.POLL_TIMEOUT)
        self.session = session or requests.Session()
        self.session.auth = (site.user, site.token)
        self.session.headers.update({
            "User-Agent": settings.USER_AGENT,
            "Accept": "application/json"
        })

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("GET", endpoint, params)

    def post(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("POST", endpoint, params)

    def close(self):
        self.session.close()

    def _request(self, method: str, endpoint: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Make an API request and return the decoded JSON object.

        Zulip reports API errors with a 4xx status and a JSON body, so the
        body is decoded first and handed back whenever it carries a
        ``result`` field, whatever the status code.

        Raises:
            TransportError on network failure or an undecodable body
        """
        url = self.site.api_url(endpoint)

        try:
            response = self.session.request(method=method, url=url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {endpoint} failed for {self.site.name}: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                f"{method} {endpoint} returned undecodable body (HTTP {response.status_code})"
            ) from e

        if not isinstance(body, dict) or "result" not in body:
            raise TransportError(
                f"{method} {endpoint} returned unexpected body (HTTP {response.status_code}): {str(body)[:200]}"
            )

        logger.debug(f"{method} {endpoint} -> HTTP {response.status_code} ({body.get('result')})")
        return body
