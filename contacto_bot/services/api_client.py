"""
Cliente HTTP del backend de ContactoProfesionales.

Todas las respuestas usan el sobre `{success, message|error, data}`. Este módulo
traduce códigos HTTP y sobres fallidos a la jerarquía de `core.exceptions`.
Las lecturas (GET) se reintentan ante errores de red o 5xx; las escrituras nunca.
"""

import logging
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from contacto_bot.core.config import settings
from contacto_bot.core.exceptions import (
    ApiError,
    AuthorizationError,
    ConnectivityError,
    NotFoundError,
    TransitionRejectedError,
)
from contacto_bot.models.location import Location, WorkModality
from contacto_bot.models.request import RequestStatus, ServiceRequest

logger = logging.getLogger(__name__)


def is_retryable_read_error(exception: BaseException) -> bool:
    if isinstance(exception, httpx.TransportError):
        return True
    return (
        isinstance(exception, httpx.HTTPStatusError)
        and exception.response.status_code >= 500
    )


api_read_retry = retry(
    retry=retry_if_exception(is_retryable_read_error),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    stop=stop_after_attempt(settings.read_retry_attempts),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


def _error_message(body: dict[str, Any]) -> str | None:
    error = body.get("error")
    if isinstance(error, dict):
        error = error.get("mensaje") or error.get("message")
    return body.get("message") if not error else error


class ContactoAPIClient:
    """
    Cliente asíncrono de la API REST.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout or settings.api_timeout_seconds,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        logger.info(f"API client initialized for {self._client.base_url}")

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Transporte ---

    @api_read_retry
    async def _get_with_retry(self, path: str, params: dict | None) -> httpx.Response:
        response = await self._client.get(path, params=params)
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    async def _get(self, path: str, params: dict | None = None) -> dict[str, Any]:
        try:
            response = await self._get_with_retry(path, params)
        except httpx.HTTPStatusError as e:
            response = e.response
        except httpx.TimeoutException as e:
            logger.error(f"GET {path} timed out: {e}")
            raise ConnectivityError(
                "⏱️ El servidor tardó demasiado en responder. Intenta nuevamente."
            ) from e
        except httpx.TransportError as e:
            logger.error(f"GET {path} failed: {e}")
            raise ConnectivityError() from e
        return self._unwrap(response)

    async def _send(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: dict | None = None,
        headers: dict | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.TimeoutException as e:
            logger.error(f"{method} {path} timed out: {e}")
            raise ConnectivityError(
                "⏱️ El servidor tardó demasiado en responder. Intenta nuevamente."
            ) from e
        except httpx.TransportError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ConnectivityError() from e
        return self._unwrap(response)

    @staticmethod
    def _unwrap(response: httpx.Response) -> dict[str, Any]:
        """Devuelve el cuerpo JSON o lanza el error correspondiente."""
        try:
            body = response.json()
        except ValueError as e:
            logger.error(
                f"Invalid JSON from {response.request.method} {response.request.url} "
                f"(HTTP {response.status_code})"
            )
            raise ConnectivityError("Respuesta del servidor inválida.") from e
        if not isinstance(body, dict):
            raise ConnectivityError("Respuesta del servidor inválida.")

        status = response.status_code
        message = _error_message(body)
        if status in (401, 403):
            raise AuthorizationError(message, status_code=status, payload=body)
        if status == 404:
            raise NotFoundError(message, status_code=status, payload=body)
        if not response.is_success or body.get("success") is False:
            raise ApiError(message, status_code=status, payload=body)
        return body

    # --- Solicitudes ---

    async def get_request(
        self, request_id: int, user_id: int, tipo: str = "profesional"
    ) -> ServiceRequest:
        body = await self._get(
            f"/solicitudes/{request_id}", params={"tipo": tipo, "usuarioId": user_id}
        )
        data = body.get("data") or {}
        solicitud = data.get("solicitud")
        if not solicitud:
            raise ApiError("No se recibió información de la solicitud.")
        if data.get("codigoSolicitud") and not solicitud.get("codigoSolicitud"):
            solicitud = {**solicitud, "codigoSolicitud": data["codigoSolicitud"]}
        return ServiceRequest.model_validate(solicitud)

    async def list_requests(self, user_id: int, tipo: str) -> list[ServiceRequest]:
        body = await self._get("/solicitudes", params={"tipo": tipo, "usuarioId": user_id})
        solicitudes = (body.get("data") or {}).get("solicitudes") or []
        return [ServiceRequest.model_validate(item) for item in solicitudes]

    async def count_pending(self, professional_id: int) -> int:
        body = await self._get(
            "/solicitudes/pendientes/count", params={"usuarioId": professional_id}
        )
        return int((body.get("data") or {}).get("count", 0))

    async def update_status(
        self, request_id: int, user_id: int, new_status: RequestStatus
    ) -> dict[str, Any]:
        """Ejecuta `PUT /solicitudes/{id}/estado`. Los rechazos se elevan como TransitionRejectedError."""
        try:
            body = await self._send(
                "PUT",
                f"/solicitudes/{request_id}/estado",
                params={"usuarioId": user_id},
                json={"nuevoEstado": new_status.wire_value},
            )
        except (AuthorizationError, NotFoundError, ConnectivityError):
            raise
        except ApiError as e:
            raise TransitionRejectedError(
                e.user_message if e.user_message != ApiError.default_message else None,
                status_code=e.status_code,
                payload=e.payload,
            ) from e
        return body.get("data") or {}

    async def cancel_request(self, request_id: int, user_id: int) -> None:
        await self._send(
            "PUT", f"/solicitudes/{request_id}/cancelar", params={"usuarioId": user_id}
        )

    async def create_request(
        self, payload: dict[str, Any], token: str | None = None
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        body = await self._send("POST", "/solicitudes", json=payload, headers=headers)
        return body.get("data") or {}

    # --- Autenticación ---

    async def login(self, email: str, password: str) -> dict[str, Any]:
        body = await self._send(
            "POST", "/login", json={"email": email, "password": password}
        )
        return body.get("data") or {}

    # --- Ubicación y modalidad ---

    async def get_departments(self) -> list[Location]:
        body = await self._get("/ubicacion/departamentos")
        return [Location.model_validate(item) for item in body.get("data") or []]

    async def get_provinces(self, department_id: int) -> list[Location]:
        body = await self._get(
            "/ubicacion/provincias", params={"departamentoId": department_id}
        )
        return [Location.model_validate(item) for item in body.get("data") or []]

    async def get_districts(self, province_id: int) -> list[Location]:
        body = await self._get(
            "/ubicacion/distritos", params={"provinciaId": province_id}
        )
        return [Location.model_validate(item) for item in body.get("data") or []]

    async def get_work_modality(self, speciality_id: int) -> WorkModality:
        body = await self._get(
            "/especialidad/modalidad", params={"especialidadId": speciality_id}
        )
        return WorkModality.model_validate(body.get("modalidad") or {})
