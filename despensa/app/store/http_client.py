from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from despensa.app.config import api_base_url
from despensa.app.services.exceptions import StateLoadError, StatePersistError
from despensa.app.services.ranking_service import RankingRequest, RankingResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0


def _build_httpx_client(base_url: str) -> httpx.Client:
    return httpx.Client(base_url=base_url, timeout=DEFAULT_TIMEOUT)


class StateEndpointClient:
    """GET/PUT of the whole per-user document at /estado."""

    def __init__(self, *, base_url: Optional[str] = None, client: Optional[httpx.Client] = None):
        self.base_url = base_url or api_base_url()
        self._client = client or _build_httpx_client(self.base_url)

    def get_state(self, email: str) -> Dict[str, Any]:
        try:
            response = self._client.get("/estado", params={"email": email})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise StateLoadError(f"Error al cargar estado: {exc}") from exc
        if payload is None:
            return {}
        if not isinstance(payload, dict):
            raise StateLoadError("Error al cargar estado: respuesta inesperada")
        return payload

    def put_state(self, email: str, document: Dict[str, Any]) -> None:
        # The endpoint replaces the document; always send all of it.
        try:
            response = self._client.put("/estado", params={"email": email}, json=document)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StatePersistError(f"Error guardando estado: {exc}") from exc

    def close(self) -> None:
        self._client.close()


class RankingClient:
    def __init__(self, *, base_url: Optional[str] = None, client: Optional[httpx.Client] = None):
        self.base_url = base_url or api_base_url()
        self._client = client or _build_httpx_client(self.base_url)

    def fetch(self, request: RankingRequest) -> RankingResponse:
        try:
            response = self._client.get("/ranking-ventas", params=request.query_params())
            response.raise_for_status()
            return RankingResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Ranking request failed for %s: %s", request.email, exc)
            raise StateLoadError("No se pudo cargar el ranking de ventas.") from exc

    def close(self) -> None:
        self._client.close()
