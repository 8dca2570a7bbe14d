"""
Renderizado de solicitudes a modelos de vista.

Funciones puras: reciben solicitudes y devuelven estructuras inmutables que la
capa de Telegram (`handlers.markup`) convierte en mensajes y botones.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

import pytz

from contacto_bot.core.config import settings
from contacto_bot.models.request import DeliveryMode, RequestStatus, ServiceRequest
from contacto_bot.models.state import RequestListFilters, Role
from contacto_bot.services.status_policy import (
    StatusAction,
    StatusBadge,
    actions_for,
    is_terminal,
    status_badge,
)

FINAL_STATE_TEXT = (
    "Esta solicitud está en un estado final. No se pueden realizar más cambios."
)
UNKNOWN_STATE_TEXT = (
    "El estado de esta solicitud no es reconocido. Las acciones están ocultas "
    "hasta que se corrija; contacta al soporte si el problema persiste."
)
EMPTY_LIST_TEXT = "No se encontraron solicitudes"


@dataclass(frozen=True)
class ActionButton:
    target: RequestStatus
    text: str
    css_class: str
    enabled: bool = True


@dataclass(frozen=True)
class RequestDetailView:
    request_id: int
    code: str
    badge: StatusBadge
    fields: tuple[tuple[str, str], ...]
    description: str
    location: tuple[tuple[str, str], ...] = ()
    notes: str | None = None
    photo_urls: tuple[str, ...] = ()
    actions: tuple[ActionButton, ...] = ()
    final_panel: str | None = None
    unknown_panel: str | None = None

    @property
    def is_final(self) -> bool:
        return self.final_panel is not None


@dataclass(frozen=True)
class ConfirmationView:
    request_id: int
    target: RequestStatus
    title: str
    prompt: str
    confirm_css_class: str


@dataclass(frozen=True)
class RequestRow:
    request_id: int
    code: str
    badge: StatusBadge
    description_preview: str
    budget: str
    district: str
    service_date: str
    created_at: str
    urgency: str
    counterpart: str
    can_cancel: bool = False


@dataclass(frozen=True)
class ListStats:
    total: int
    pending: int
    completed: int
    budget_total: str


@dataclass(frozen=True)
class RequestListView:
    role: Role
    rows: tuple[RequestRow, ...]
    stats: ListStats
    results_text: str
    empty_text: str | None = None
    filters: RequestListFilters = field(default_factory=RequestListFilters)

    @property
    def pending_count(self) -> int:
        return self.stats.pending


# --- Formateo ---


def format_datetime(dt: datetime | None) -> str:
    """Formatea una fecha en la zona horaria configurada. Las fechas sin zona se muestran tal cual."""
    if not dt:
        return "-"
    if dt.tzinfo is not None:
        dt = dt.astimezone(pytz.timezone(settings.display_timezone))
    return dt.strftime("%d/%m/%Y %H:%M")


def format_money(amount: Decimal | float | None) -> str:
    value = Decimal(str(amount)) if amount is not None else Decimal("0")
    return f"S/ {value:.2f}"


def truncate(text: str | None, length: int | None = None) -> str:
    length = length or settings.description_preview_length
    text = (text or "").strip()
    if len(text) <= length:
        return text
    return text[: length - 1].rstrip() + "…"


def urgency_label(urgency: str | None) -> str:
    return "🔥 Urgente" if urgency == "urgent" else "📅 Normal"


def modality_label(mode: DeliveryMode | None) -> str:
    if mode == DeliveryMode.ON_SITE:
        return "📍 Presencial"
    if mode == DeliveryMode.REMOTE:
        return "💻 Remoto"
    return "-"


# --- Detalle ---


def render_request_detail(request: ServiceRequest, *, busy: bool = False) -> RequestDetailView:
    """
    Construye la vista de detalle.

    Estados finales: sin acciones y con panel explicativo. Estado desconocido:
    sin acciones y con un panel distinto. Resto: un botón por transición legal,
    deshabilitados mientras `busy` es verdadero.
    """
    fields = (
        ("Cliente", request.client_name or "-"),
        ("Email", request.client_email or "-"),
        ("Teléfono", request.client_phone or "-"),
        ("Fecha de solicitud", format_datetime(request.created_at)),
        ("Fecha del servicio", format_datetime(request.requested_service_date)),
        ("Urgencia", urgency_label(request.urgency)),
        ("Presupuesto", format_money(request.estimated_budget)),
        ("Modalidad", modality_label(request.delivery_mode)),
    )

    location: tuple[tuple[str, str], ...] = ()
    if request.delivery_mode == DeliveryMode.ON_SITE and request.address:
        address = request.address
        location = (
            ("Departamento", address.region or "-"),
            ("Provincia", address.province or "-"),
            ("Distrito", address.district or "-"),
            ("Dirección", address.address_line or "-"),
            ("Referencia", address.reference or "-"),
            ("Código postal", address.postal_code or "-"),
        )

    actions: tuple[ActionButton, ...] = ()
    final_panel = None
    unknown_panel = None
    if request.status is RequestStatus.UNKNOWN:
        unknown_panel = UNKNOWN_STATE_TEXT
    elif is_terminal(request.status):
        final_panel = FINAL_STATE_TEXT
    else:
        actions = tuple(
            ActionButton(
                target=action.target,
                text="⏳ Procesando..." if busy else f"{action.icon} {action.label}",
                css_class=action.css_class,
                enabled=not busy,
            )
            for action in actions_for(request.status)
        )

    return RequestDetailView(
        request_id=request.id,
        code=request.display_code,
        badge=status_badge(request.status, request.raw_status),
        fields=fields,
        description=request.description or "-",
        location=location,
        notes=request.notes or None,
        photo_urls=tuple(request.photo_urls),
        actions=actions,
        final_panel=final_panel,
        unknown_panel=unknown_panel,
    )


def render_confirmation(request_id: int, action: StatusAction) -> ConfirmationView:
    return ConfirmationView(
        request_id=request_id,
        target=action.target,
        title=action.confirm_title,
        prompt=action.confirm_prompt,
        confirm_css_class="btn-danger" if action.destructive else "btn-confirm",
    )


# --- Listado ---


def apply_filters(
    requests: list[ServiceRequest], filters: RequestListFilters
) -> list[ServiceRequest]:
    result = list(requests)
    if filters.status is not None:
        result = [item for item in result if item.status is filters.status]

    search = filters.search.strip().lower()
    if search:
        result = [
            item
            for item in result
            if search in (item.description or "").lower()
            or search in ((item.address.district if item.address else None) or "").lower()
        ]

    if filters.order == "reciente":
        result.sort(key=lambda item: item.created_at or datetime.min, reverse=True)
    elif filters.order == "antiguo":
        result.sort(key=lambda item: item.created_at or datetime.min)
    elif filters.order == "presupuesto":
        result.sort(key=lambda item: item.budget_or_zero, reverse=True)
    return result


def compute_stats(requests: list[ServiceRequest]) -> ListStats:
    return ListStats(
        total=len(requests),
        pending=sum(1 for item in requests if item.status is RequestStatus.PENDING),
        completed=sum(1 for item in requests if item.status is RequestStatus.COMPLETED),
        budget_total=format_money(sum((item.budget_or_zero for item in requests), Decimal("0"))),
    )


def render_request_list(
    requests: list[ServiceRequest],
    role: Role,
    filters: RequestListFilters | None = None,
) -> RequestListView:
    """
    Construye el listado. Las estadísticas se calculan sobre todas las
    solicitudes; las filas, sobre las que pasan los filtros.
    """
    filters = filters or RequestListFilters()
    visible = apply_filters(requests, filters)

    rows = tuple(
        RequestRow(
            request_id=item.id,
            code=item.display_code,
            badge=status_badge(item.status, item.raw_status),
            description_preview=truncate(item.description) or "Sin descripción",
            budget=format_money(item.estimated_budget),
            district=(item.address.district if item.address else None) or "N/A",
            service_date=format_datetime(item.requested_service_date),
            created_at=format_datetime(item.created_at),
            urgency=urgency_label(item.urgency),
            counterpart=(
                f"Profesional ID: {item.professional_id}"
                if role == "cliente"
                else item.client_name or f"Cliente ID: {item.client_id}"
            ),
            can_cancel=role == "cliente" and item.status is RequestStatus.PENDING,
        )
        for item in visible
    )

    return RequestListView(
        role=role,
        rows=rows,
        stats=compute_stats(requests),
        results_text=(
            f"{len(rows)} solicitud(es) encontrada(s)" if rows else EMPTY_LIST_TEXT
        ),
        empty_text=None if rows else EMPTY_LIST_TEXT,
        filters=filters,
    )
