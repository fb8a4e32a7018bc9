"""HTTP adapter for the graph backend's lookup and upsert endpoints."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from catalog_import.adapters.http_resilience import ResilientClient
from catalog_import.domain.errors import BackendResponseError, BackendUnavailableError
from catalog_import.domain.ports import (
    CatalogBackend,
    CatalogElement,
    RejectedWrite,
    WriteResult,
    WrittenElement,
)

from .schema import ElementPayload, ErrorResponse, LookupResponse, UpsertRequest, UpsertResponse

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from catalog_import.config import GraphBackendConfig
    from catalog_import.domain.model import AttributeValue, ElementType

log = getLogger(__name__)


class GraphBackendError(BackendResponseError):
    """Raised when the graph backend answers with an unexpected payload or status."""


@dataclass(slots=True)
class HttpCatalogBackend:
    config: GraphBackendConfig
    transport: httpx.BaseTransport | None = None
    _client: ResilientClient = field(init=False)

    def __post_init__(self) -> None:
        self._client = ResilientClient(
            self.config.resilience,
            headers=self.config.headers(),
            transport=self.transport,
        )

    def __enter__(self) -> HttpCatalogBackend:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def find_by_key(self, element_type: ElementType, field: str, value: str) -> str | None:
        response = self._send(
            "GET",
            "elements/lookup",
            params={"type": str(element_type), "field": field, "value": value},
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        payload = self._json(response, LookupResponse)
        return payload.element_id

    def get_element(self, element_id: str) -> CatalogElement | None:
        response = self._send("GET", f"elements/{quote(element_id, safe='')}")
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        payload = self._json(response, ElementPayload)
        return CatalogElement(
            id=payload.id,
            element_type=payload.element_type,
            attributes=payload.scalar_attributes(),
        )

    def upsert(
        self,
        element_type: ElementType,
        element_id: str | None,
        attributes: Mapping[str, AttributeValue],
    ) -> WriteResult:
        body = UpsertRequest(element_type=str(element_type), attributes=dict(attributes))
        json_body = body.model_dump(by_alias=True)
        if element_id is None:
            response = self._send("POST", "elements", json=json_body)
        else:
            response = self._send("PUT", f"elements/{quote(element_id, safe='')}", json=json_body)

        if response.is_client_error:
            return RejectedWrite(self._error_message(response))
        return WrittenElement(self._json(response, UpsertResponse).id)

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:  # noqa: ANN401
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise BackendUnavailableError(f"Graph backend unreachable: {exc}") from exc
        if response.is_server_error:
            raise BackendUnavailableError(
                f"Graph backend returned {response.status_code} for {method} {url}"
            )
        return response

    def _json[T: ErrorResponse | LookupResponse | ElementPayload | UpsertResponse](
        self, response: httpx.Response, model: type[T]
    ) -> T:
        if response.is_error:
            raise GraphBackendError(
                self._error_message(response), status_code=response.status_code
            )
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            log.error("Unexpected graph backend payload for %s: %s", response.request.url, exc)
            raise GraphBackendError(
                "Unexpected graph backend payload", status_code=response.status_code
            ) from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        fallback = f"HTTP {response.status_code}"
        try:
            return ErrorResponse.model_validate(response.json()).describe(fallback)
        except (ValueError, ValidationError):
            return response.text.strip() or fallback


if TYPE_CHECKING:
    _backend_check: CatalogBackend = HttpCatalogBackend.__new__(HttpCatalogBackend)
