"""
Almacén en memoria de las solicitudes leídas del backend.

Cada lectura reemplaza por completo el valor guardado; no se fusionan campos.
"""

import logging

from contacto_bot.models.request import RequestStatus, ServiceRequest

logger = logging.getLogger(__name__)


class RequestStore:
    """
    Modelo de lectura para el renderizado: la solicitud en detalle y el listado.
    """

    def __init__(self) -> None:
        self._detail: ServiceRequest | None = None
        self._items: list[ServiceRequest] = []

    @property
    def detail(self) -> ServiceRequest | None:
        return self._detail

    @property
    def items(self) -> list[ServiceRequest]:
        return list(self._items)

    def get(self, request_id: int) -> ServiceRequest | None:
        if self._detail is not None and self._detail.id == request_id:
            return self._detail
        for item in self._items:
            if item.id == request_id:
                return item
        return None

    def replace_detail(self, request: ServiceRequest) -> None:
        self._detail = request
        for index, item in enumerate(self._items):
            if item.id == request.id:
                self._items[index] = request
                break
        logger.debug(f"Stored request {request.id} with status '{request.status.value}'.")

    def replace_list(self, requests: list[ServiceRequest]) -> None:
        self._items = list(requests)
        logger.debug(f"Stored list of {len(self._items)} requests.")

    def invalidate(self, request_id: int) -> None:
        """Descarta la solicitud guardada; la siguiente lectura irá al backend."""
        if self._detail is not None and self._detail.id == request_id:
            self._detail = None
        self._items = [item for item in self._items if item.id != request_id]
        logger.debug(f"Invalidated stored request {request_id}.")

    def pending_count(self) -> int:
        return sum(1 for item in self._items if item.status is RequestStatus.PENDING)

    def clear(self) -> None:
        self._detail = None
        self._items = []
