# ============================================================================
# REMOTE RESOURCE CLIENT
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Infrastructure - Async HTTP client per control plane
# PURPOSE: Authenticated calls to Fabric / ARM / Purview with classified errors
# CREATED: 18 OCT 2026
# ============================================================================
"""
Remote Resource Client

Async httpx client bound to one control plane. Every failed call is
raised as RemoteCallError carrying an ErrorClass; successful calls
return a RemoteResponse.

Behavior:
- Bearer token from the run's TokenProvider (never a global)
- 401 -> exactly one forced token refresh and one replay, then FATAL
- Transport failures and timeouts -> TRANSIENT
- No replay of anything else; retry safety lives in the idempotent step

In-flight requests are never aborted on cancellation, so a create call
is not left indeterminate.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from core.contracts import ControlPlane, ErrorClass
from core.errors import RemoteCallError
from core.logging import log_context
from infrastructure.auth.token_provider import TokenProvider
from infrastructure.classification import classify, extract_error_code

logger = logging.getLogger(__name__)

# Response bodies kept on errors for diagnostics
MAX_DETAIL_CHARS = 500

# Continuation fields across Fabric, Purview and ARM list responses
_NEXT_LINK_FIELDS = ("continuationUri", "@odata.nextLink", "nextLink")


@dataclass
class RemoteResponse:
    """Successful response from a control plane."""
    status_code: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        """202: the provider finishes the operation asynchronously."""
        return self.status_code == 202

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("location")

    @property
    def retry_after(self) -> Optional[float]:
        value = self.headers.get("retry-after")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    def json_dict(self) -> Dict[str, Any]:
        """Body as a dict ({} when empty or not an object)."""
        return self.body if isinstance(self.body, dict) else {}

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "RemoteResponse":
        body: Any = None
        if response.content:
            try:
                body = response.json()
            except ValueError:
                body = response.text
        return cls(
            status_code=response.status_code,
            body=body,
            headers={k.lower(): v for k, v in response.headers.items()},
        )


class RemoteResourceClient:
    """
    Authenticated async client for one control plane.

    Args:
        plane: Which control plane this client talks to
        base_url: Plane root (e.g. https://api.fabric.microsoft.com/v1)
        scope: OAuth scope for bearer tokens
        tokens: Run-scoped TokenProvider
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass MockTransport)
    """

    def __init__(
        self,
        plane: ControlPlane,
        base_url: str,
        scope: str,
        tokens: TokenProvider,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.plane = plane
        self.base_url = base_url.rstrip("/")
        self.scope = scope
        self._tokens = tokens
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 30.0)),
            transport=transport,
        )
        self.request_count = 0

    async def close(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # CORE CALL
    # ------------------------------------------------------------------

    async def invoke(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> RemoteResponse:
        """
        Issue one authenticated request.

        Args:
            method: HTTP method
            path: Path relative to base_url, or an absolute URL
                (continuation links, Location headers)
            json: Request body
            params: Query parameters

        Returns:
            RemoteResponse for any 2xx

        Raises:
            RemoteCallError: classified failure
        """
        with log_context(control_plane=self.plane.value):
            token = await self._tokens.get_token(self.scope)
            response = await self._send(method, path, token, json, params)

            if response.status_code == 401:
                logger.warning(f"{method} {path} -> 401, refreshing token once")
                token = await self._tokens.force_refresh(self.scope, token)
                response = await self._send(method, path, token, json, params)
                if response.status_code == 401:
                    raise self._error(method, path, response, error_code="Unauthorized")

            if response.is_success:
                logger.debug(f"{method} {path} -> {response.status_code}")
                return RemoteResponse.from_httpx(response)

            raise self._error(method, path, response)

    async def _send(
        self,
        method: str,
        path: str,
        token: str,
        json: Optional[Any],
        params: Optional[Dict[str, Any]],
    ) -> httpx.Response:
        self.request_count += 1
        try:
            return await self._http.request(
                method,
                path,
                json=json,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{self.plane.value} timeout: {method} {path}: {e}")
            raise RemoteCallError(
                f"{method} {path} timed out", ErrorClass.TRANSIENT, detail=str(e)
            ) from e
        except httpx.TransportError as e:
            logger.warning(f"{self.plane.value} transport error: {method} {path}: {e}")
            raise RemoteCallError(
                f"{method} {path} failed: {type(e).__name__}", ErrorClass.TRANSIENT, detail=str(e)
            ) from e

    def _error(
        self,
        method: str,
        path: str,
        response: httpx.Response,
        error_code: Optional[str] = None,
    ) -> RemoteCallError:
        text = response.text or ""
        code = error_code or extract_error_code(text)
        classification = classify(response.status_code, code)
        detail = text[:MAX_DETAIL_CHARS]
        message = f"{method} {path} -> {response.status_code}"
        if code:
            message += f" ({code})"
        log = logger.debug if classification == ErrorClass.NOT_FOUND else logger.warning
        log(f"{self.plane.value}: {message} classified {classification.value}")
        return RemoteCallError(
            message,
            classification,
            status_code=response.status_code,
            error_code=code,
            detail=detail,
        )

    # ------------------------------------------------------------------
    # CONVENIENCE
    # ------------------------------------------------------------------

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> RemoteResponse:
        return await self.invoke("GET", path, params=params)

    async def get_or_none(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Optional[RemoteResponse]:
        """GET that maps NOT_FOUND to None; every other failure propagates."""
        try:
            return await self.invoke("GET", path, params=params)
        except RemoteCallError as e:
            if e.classification == ErrorClass.NOT_FOUND:
                return None
            raise

    async def list_items(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        item_key: str = "value",
    ) -> List[Dict[str, Any]]:
        """
        GET a collection, following continuation links.

        Continuation links are absolute and already carry the query, so
        params only apply to the first page.
        """
        items: List[Dict[str, Any]] = []
        next_path: Optional[str] = path
        next_params = params
        while next_path:
            page = (await self.invoke("GET", next_path, params=next_params)).json_dict()
            items.extend(page.get(item_key) or [])
            next_path = None
            next_params = None
            for link_field in _NEXT_LINK_FIELDS:
                if page.get(link_field):
                    next_path = page[link_field]
                    break
        return items


__all__ = ["RemoteResourceClient", "RemoteResponse", "MAX_DETAIL_CHARS"]
