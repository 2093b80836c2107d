from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import EngineUnavailable, TransportError
from .config import EngineSettings

logger = logging.getLogger(__name__)

_MAX_BODY_CHARS = 2000


class HttpEngineClient:
    """Shared HTTP plumbing for engine clients.

    One blocking request per call and no retries: a retry loop against the same
    engine would hide an outage behind repeated slow timeouts. Failover is the
    orchestrator's decision.

    Example:
        ```python
        client = HttpEngineClient(EngineSettings(kind="piston", base_url="http://localhost:2000/api/v2"))
        ```
    """

    name = "http"

    def __init__(self, settings: EngineSettings, *, client: httpx.Client | None = None) -> None:
        """Bind engine settings and an optional pre-built httpx client.

        Example:
            ```python
            engine = HttpEngineClient(settings, client=httpx.Client(transport=transport))
            ```
        """
        self._settings = settings
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(follow_redirects=True)

    @property
    def settings(self) -> EngineSettings:
        """Return the settings this client was built with.

        Example:
            ```python
            url = engine.settings.base_url
            ```
        """
        return self._settings

    def close(self) -> None:
        """Close the HTTP client if this engine created it.

        Example:
            ```python
            engine.close()
            ```
        """
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpEngineClient":
        """Enter a context that closes the client on exit.

        Example:
            ```python
            with PistonEngine(settings) as engine:
                engine.list_runtimes()
            ```
        """
        return self

    def __exit__(self, *exc_info: object) -> None:
        """Close the client when leaving the context.

        Example:
            ```python
            engine.__exit__(None, None, None)
            ```
        """
        self.close()

    def _url(self, path: str) -> str:
        """Join the configured base URL with an endpoint path.

        Example:
            ```python
            engine._url("/runtimes")
            ```
        """
        if not path.startswith("/"):
            path = "/" + path
        return self._settings.base_url + path

    def _headers(self) -> dict[str, str]:
        """Return request headers; engines add their authentication headers.

        Example:
            ```python
            headers = engine._headers()
            ```
        """
        return {"Accept": "application/json"}

    def _request_json(
        self,
        method: str,
        path: str,
        *,
        timeout: float,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Send one request and decode its JSON body.

        Network failures and client-side timeouts raise `EngineUnavailable`;
        non-2xx statuses and unparsable bodies raise `TransportError` carrying
        the body for diagnostics.

        Example:
            ```python
            payload = engine._request_json("GET", "/runtimes", timeout=10)
            ```
        """
        url = self._url(path)
        logger.debug("%s %s %s (timeout=%ss)", self.name, method, url, timeout)
        try:
            response = self._client.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._headers(),
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise EngineUnavailable(self.name, f"timed out after {timeout}s waiting for {url}") from exc
        except httpx.HTTPError as exc:
            raise EngineUnavailable(self.name, f"could not reach {url}: {exc}") from exc

        if not response.is_success:
            body = response.text[:_MAX_BODY_CHARS]
            message = f"HTTP {response.status_code} from {url}"
            if body.strip():
                message = f"{message}: {body.strip()}"
            raise TransportError(
                self.name,
                message,
                status_code=response.status_code,
                body=body,
            )
        try:
            return response.json()
        except ValueError as exc:
            body = response.text[:_MAX_BODY_CHARS]
            raise TransportError(
                self.name,
                f"unparsable response body from {url}",
                status_code=response.status_code,
                body=body,
            ) from exc
