"""
Modelos de datos de una solicitud de servicio.
"""

import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)


class RequestStatus(str, Enum):
    """Estados de una solicitud. UNKNOWN agrupa cualquier valor no reconocido."""

    PENDING = "pendiente"
    ACCEPTED = "aceptada"
    REJECTED = "rechazada"
    COMPLETED = "completada"
    CANCELLED = "cancelada"
    UNKNOWN = "desconocido"

    @classmethod
    def parse(cls, raw: Any) -> "RequestStatus":
        """Convierte el estado del backend (sin distinguir mayúsculas) en un RequestStatus."""
        if isinstance(raw, cls):
            return raw
        value = str(raw).strip().lower() if raw is not None else ""
        for status in cls:
            if status is not cls.UNKNOWN and status.value == value:
                return status
        logger.warning(f"Unrecognized request status received from backend: {raw!r}")
        return cls.UNKNOWN

    @property
    def wire_value(self) -> str:
        """Valor enviado en `nuevoEstado`."""
        return self.value.upper()


class DeliveryMode(str, Enum):
    REMOTE = "REMOTO"
    ON_SITE = "PRESENCIAL"


Urgency = Literal["normal", "urgent"]


class ServiceAddress(BaseModel):
    """
    Ubicación de un servicio presencial.

    Los ids solo existen en el borrador del asistente; las solicitudes leídas del
    backend traen únicamente los nombres.
    """

    region: str | None = None
    region_id: int | None = None
    province: str | None = None
    province_id: int | None = None
    district: str | None = None
    district_id: int | None = None
    address_line: str | None = None
    reference: str | None = None
    postal_code: str | None = None

    def is_complete(self) -> bool:
        required = (self.region, self.province, self.district, self.address_line)
        return all(value and value.strip() for value in required)

    def one_line(self) -> str:
        parts = [self.address_line, self.district, self.province, self.region]
        return ", ".join(part for part in parts if part)


class ServiceRequest(BaseModel):
    """
    Solicitud de servicio tal como la entrega el backend.

    Los alias corresponden a las claves JSON de la API.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    status: RequestStatus = Field(default=RequestStatus.UNKNOWN, alias="estado")
    raw_status: str = ""
    code: str | None = Field(default=None, alias="codigoSolicitud")
    client_id: int | None = Field(default=None, alias="clienteId")
    professional_id: int | None = Field(default=None, alias="profesionalId")
    description: str = Field(default="", alias="descripcion")
    estimated_budget: Decimal | None = Field(default=None, alias="presupuestoEstimado")
    requested_service_date: datetime | None = Field(default=None, alias="fechaServicio")
    created_at: datetime | None = Field(default=None, alias="fechaSolicitud")
    responded_at: datetime | None = Field(default=None, alias="fechaRespuesta")
    updated_at: datetime | None = Field(default=None, alias="fechaActualizacion")
    urgency: str | None = Field(default=None, alias="urgencia")
    notes: str | None = Field(default=None, alias="notasAdicionales")
    delivery_mode: DeliveryMode | None = Field(default=None, alias="tipoPrestacion")
    address: ServiceAddress | None = None
    client_name: str | None = Field(default=None, alias="clienteNombreCompleto")
    client_email: str | None = Field(default=None, alias="clienteEmail")
    client_phone: str | None = Field(default=None, alias="clienteTelefono")
    photo_urls: list[str] = Field(default_factory=list, alias="fotosUrls")

    @model_validator(mode="before")
    @classmethod
    def _normalize_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        raw = data.pop("estado", data.pop("status", None))
        if isinstance(raw, RequestStatus):
            data.setdefault("raw_status", raw.value)
        else:
            data.setdefault("raw_status", "" if raw is None else str(raw))
        data["estado"] = RequestStatus.parse(raw)

        # El backend envía la ubicación en claves planas
        if "address" not in data:
            address = ServiceAddress(
                region=data.get("departamentoNombre"),
                province=data.get("provinciaNombre"),
                district=data.get("distritoNombre") or data.get("distrito"),
                address_line=data.get("direccion"),
                reference=data.get("referencia"),
                postal_code=data.get("codigoPostal"),
            )
            if any(address.model_dump().values()):
                data["address"] = address

        mode = data.get("tipoPrestacion", data.get("delivery_mode"))
        if isinstance(mode, str) and not isinstance(mode, DeliveryMode):
            mode = mode.strip().upper()
            data.pop("delivery_mode", None)
            data["tipoPrestacion"] = (
                mode if mode in {m.value for m in DeliveryMode} else None
            )
        if data.get("fotosUrls") is None:
            data.pop("fotosUrls", None)
        return data

    @property
    def display_code(self) -> str:
        """Código legible; el del backend tiene prioridad sobre el calculado."""
        if self.code:
            return self.code
        year = (self.created_at or datetime.now()).year
        return f"SR-{year}-{self.id:06d}"

    @property
    def budget_or_zero(self) -> Decimal:
        return self.estimated_budget if self.estimated_budget is not None else Decimal("0")


class ServiceRequestDraft(BaseModel):
    """
    Borrador acumulado por el asistente de nueva solicitud.

    Se guarda en `context.user_data` mientras dura el diálogo.
    """

    professional_id: int
    speciality_id: int | None = None
    description: str | None = None
    estimated_budget: Decimal | None = None
    delivery_mode: DeliveryMode | None = None
    address: ServiceAddress = Field(default_factory=ServiceAddress)
    service_datetime: datetime | None = None
    urgency: Urgency = "normal"
    notes: str | None = None
    photos: list[str] = Field(default_factory=list)
    terms_accepted: bool = False

    def clear_address(self) -> None:
        self.address = ServiceAddress()

    def to_payload(self, client_id: int) -> dict[str, Any]:
        """Cuerpo de `POST /api/solicitudes`."""
        on_site = self.delivery_mode == DeliveryMode.ON_SITE
        address = self.address if on_site else ServiceAddress()
        return {
            "clienteId": client_id,
            "profesionalId": self.professional_id,
            "descripcion": (self.description or "").strip(),
            "presupuestoEstimado": float(self.estimated_budget or 0),
            "direccion": address.address_line.strip() if address.address_line else None,
            "distrito": address.district,
            "codigoPostal": address.postal_code or None,
            "referencia": address.reference or None,
            "departamentoId": address.region_id,
            "provinciaId": address.province_id,
            "distritoId": address.district_id,
            "tipoPrestacion": self.delivery_mode.value if self.delivery_mode else None,
            "especialidadId": self.speciality_id,
            "fechaServicio": (
                self.service_datetime.strftime("%Y-%m-%dT%H:%M:00")
                if self.service_datetime
                else None
            ),
            "urgencia": self.urgency,
            "notasAdicionales": (self.notes or "").strip(),
            "fotosBase64": list(self.photos),
            "estado": RequestStatus.PENDING.value,
        }
