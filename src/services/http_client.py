from __future__ import annotations

from typing import Any

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from .price_sources import ProviderError


class JsonHttpClient:
    """GET-only JSON client shared by the provider adapters.

    Every upstream failure (transport, non-2xx status, invalid JSON) is raised
    as ``ProviderError`` so the resolution chain can treat them uniformly.
    """

    def __init__(
        self,
        *,
        base_url: str,
        provider_label: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        retry_attempts: int = 2,
        retry_backoff_seconds: float = 0.25,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.provider_label = provider_label
        self.timeout = timeout
        self.headers = {"Accept": "application/json", **(headers or {})}
        self._session = session or requests.Session()

        # Status retries only; timeouts and connection errors fail fast.
        retries = Retry(
            total=retry_attempts,
            connect=0,
            read=0,
            status=retry_attempts,
            backoff_factor=retry_backoff_seconds,
            status_forcelist=[429, 502, 503, 504],
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def get_json(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                "GET",
                url,
                params=params,
                headers={**self.headers, **(headers or {})},
                timeout=timeout or self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            status_code = getattr(resp, "status_code", None)
            payload = self._extract_payload(resp)
            message = f"{self.provider_label} request failed ({status_code})"
            raise ProviderError(message, status_code=status_code, payload=payload) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise ProviderError(f"{self.provider_label} request failed", status_code=status_code) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.provider_label} returned invalid JSON", payload=response.text) from exc

    @staticmethod
    def _extract_payload(response: Response | None) -> Any | None:
        if response is None:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text


__all__ = ["JsonHttpClient"]
