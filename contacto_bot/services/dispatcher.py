"""
Despachador de acciones sobre solicitudes de servicio.

Valida cada cambio de estado contra la política local, lo envía al backend y
vuelve a leer la solicitud: el backend es la fuente de verdad.
"""

import logging
from datetime import datetime

from contacto_bot.core.exceptions import (
    ContactoError,
    SessionExpiredError,
    StaleViewError,
    TransitionInProgressError,
    TransitionRejectedError,
    ValidationError,
)
from contacto_bot.models.request import (
    RequestStatus,
    ServiceRequest,
    ServiceRequestDraft,
)
from contacto_bot.models.state import Role
from contacto_bot.models.user import UserData
from contacto_bot.services.api_client import ContactoAPIClient
from contacto_bot.services.request_store import RequestStore
from contacto_bot.services.status_policy import ensure_transition
from contacto_bot.services.validation import validate_draft

logger = logging.getLogger(__name__)


class ActionDispatcher:
    """
    Ejecuta acciones del usuario contra la API y mantiene al día el RequestStore.

    Se crea un despachador por usuario; el store que recibe es de ese usuario.
    """

    def __init__(self, api: ContactoAPIClient, store: RequestStore, user: UserData):
        if not user or not user.id:
            raise SessionExpiredError()
        self.api = api
        self.store = store
        self.user = user
        self._in_flight: set[int] = set()

    def is_busy(self, request_id: int) -> bool:
        return request_id in self._in_flight

    def _user_id_for(self, role: Role) -> int:
        return self.user.acting_professional_id if role == "profesional" else self.user.id

    async def refresh_detail(
        self, request_id: int, role: Role = "profesional"
    ) -> ServiceRequest:
        request = await self.api.get_request(
            request_id, self._user_id_for(role), tipo=role
        )
        self.store.replace_detail(request)
        return request

    async def refresh_list(self, role: Role) -> list[ServiceRequest]:
        requests = await self.api.list_requests(self._user_id_for(role), tipo=role)
        self.store.replace_list(requests)
        logger.info(f"Loaded {len(requests)} requests for user {self.user.id} as {role}.")
        return requests

    async def fetch_pending_count(self) -> int:
        """Cantidad de solicitudes pendientes del profesional, para el aviso."""
        return await self.api.count_pending(self.user.acting_professional_id)

    async def request_transition(
        self, request_id: int, target: RequestStatus
    ) -> ServiceRequest:
        """
        Lleva la solicitud al estado `target` y devuelve la versión refrescada.

        Una transición ilegal falla sin llamar al backend. Repetir una transición
        ya aplicada también falla localmente, porque el destino deja de ser legal.
        """
        if request_id in self._in_flight:
            raise TransitionInProgressError()

        self._in_flight.add(request_id)
        try:
            current = self.store.get(request_id)
            if current is None:
                current = await self.refresh_detail(request_id)
            ensure_transition(current.status, target)

            professional_id = self.user.acting_professional_id
            logger.info(
                f"Professional {professional_id} requests {current.status.value} -> "
                f"{target.value} on request {request_id}."
            )
            try:
                await self.api.update_status(request_id, professional_id, target)
            except TransitionRejectedError as e:
                logger.warning(
                    f"Backend rejected transition of request {request_id} to "
                    f"{target.value}: {e.user_message}"
                )
                await self._resync(request_id)
                raise

            try:
                refreshed = await self.refresh_detail(request_id)
            except ContactoError as e:
                # El cambio ya se aplicó: la copia local quedó obsoleta
                self.store.invalidate(request_id)
                logger.error(
                    f"Request {request_id} moved to {target.value} but could not be "
                    f"re-read: {e}"
                )
                raise StaleViewError(request_id, target.value, cause=e) from e
        finally:
            self._in_flight.discard(request_id)

        logger.info(f"Request {request_id} is now '{refreshed.status.value}'.")
        return refreshed

    async def _resync(self, request_id: int) -> None:
        try:
            await self.refresh_detail(request_id)
        except Exception as e:
            logger.error(f"Failed to resync request {request_id}: {e}", exc_info=True)

    async def cancel_as_client(self, request_id: int) -> list[ServiceRequest]:
        """Cancela una solicitud pendiente del propio cliente y recarga su listado."""
        if request_id in self._in_flight:
            raise TransitionInProgressError()

        self._in_flight.add(request_id)
        try:
            current = self.store.get(request_id)
            if current is None:
                current = await self.refresh_detail(request_id, "cliente")
            if current.status is not RequestStatus.PENDING:
                raise ValidationError("Solo se pueden cancelar solicitudes pendientes.")
            await self.api.cancel_request(request_id, self.user.id)
        finally:
            self._in_flight.discard(request_id)
        logger.info(f"Client {self.user.id} cancelled request {request_id}.")
        return await self.refresh_list("cliente")

    async def submit_request(self, draft: ServiceRequestDraft) -> str:
        """Valida el borrador y lo envía. Devuelve el código de la nueva solicitud."""
        validate_draft(draft)
        payload = draft.to_payload(client_id=self.user.id)
        data = await self.api.create_request(payload, token=self.user.token)
        request_id = data.get("solicitudId")
        code = data.get("codigoSolicitud") or (
            f"SR-{datetime.now().year}-{request_id:06d}"
            if isinstance(request_id, int) else "SR-pendiente"
        )
        logger.info(
            f"Client {self.user.id} created request {request_id} ({code}) "
            f"for professional {draft.professional_id}."
        )
        return code
