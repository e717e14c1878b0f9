"""Thin GitHub REST client used by every remote stage of the relay."""
from __future__ import annotations

from typing import Dict, Iterator, Optional

import requests

from pkgrelay.errors import GitHubApiError, GitHubNotFound

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 60
PER_PAGE = 100

DEFAULT_HEADERS = {
    "Accept": "application/vnd.github+json",
    "User-Agent": "pkgrelay/1.0",
    "X-GitHub-Api-Version": "2022-11-28",
}


class GitHubClient:
    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def url(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.api_url}/{path_or_url.lstrip('/')}"

    def _headers(self, accept: Optional[str]) -> Dict[str, str]:
        headers = dict(DEFAULT_HEADERS)
        if accept:
            headers["Accept"] = accept
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        path_or_url: str,
        params: Optional[Dict[str, object]] = None,
        accept: Optional[str] = None,
        allow_redirects: bool = True,
    ) -> requests.Response:
        url = self.url(path_or_url)
        response = self.session.get(
            url,
            params=params,
            headers=self._headers(accept),
            allow_redirects=allow_redirects,
            timeout=self.timeout,
        )
        if response.status_code == 404:
            raise GitHubNotFound(404, url, _error_message(response))
        if response.status_code >= 400:
            raise GitHubApiError(response.status_code, url, _error_message(response))
        return response

    def get_json(self, path_or_url: str, params: Optional[Dict[str, object]] = None) -> object:
        return self.request(path_or_url, params=params).json()

    def get_text(self, path_or_url: str) -> str:
        # Job logs are UTF-8 but served as text/plain without a charset.
        return self.request(path_or_url).content.decode("utf-8", errors="replace")

    def paginate(
        self,
        path_or_url: str,
        key: Optional[str] = None,
        params: Optional[Dict[str, object]] = None,
    ) -> Iterator[dict]:
        """Yield items across every page, following ``Link: rel="next"``.

        *key* names the list inside an object payload (``workflows``, ``jobs``,
        ...); endpoints that return a bare JSON array pass ``None``.
        """

        query: Dict[str, object] = {"per_page": PER_PAGE}
        query.update(params or {})
        next_url: Optional[str] = self.url(path_or_url)
        while next_url:
            response = self.request(next_url, params=query)
            payload = response.json()
            items = payload.get(key) if key and isinstance(payload, dict) else payload
            if not isinstance(items, list):
                items = []
            for item in items:
                if isinstance(item, dict):
                    yield item
            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string.
            query = {}

    def resolve_redirect(self, path_or_url: str) -> str:
        """Return the ``Location`` a redirecting endpoint points at without following it."""

        response = self.request(path_or_url, allow_redirects=False)
        location = response.headers.get("location")
        if not location:
            raise GitHubApiError(
                response.status_code, self.url(path_or_url), "expected a redirect with a Location header"
            )
        return location

    def open_download(self, url: str) -> requests.Response:
        # Signed storage URLs reject the API Authorization header.
        return self.session.get(url, stream=True, timeout=self.timeout)


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return (response.text or "")[:200]
    if isinstance(payload, dict):
        return str(payload.get("message") or "")
    return ""
