"""
Política de estados de una solicitud de servicio.

Reglas de transición:
    pendiente -> aceptada | rechazada
    aceptada  -> completada | cancelada
    rechazada, completada, cancelada -> (estado final)

Un estado desconocido no admite acciones, pero se distingue de un estado final.
"""

import logging
from dataclasses import dataclass

from contacto_bot.core.exceptions import IllegalTransitionError
from contacto_bot.models.request import RequestStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[RequestStatus, tuple[RequestStatus, ...]] = {
    RequestStatus.PENDING: (RequestStatus.ACCEPTED, RequestStatus.REJECTED),
    RequestStatus.ACCEPTED: (RequestStatus.COMPLETED, RequestStatus.CANCELLED),
    RequestStatus.REJECTED: (),
    RequestStatus.COMPLETED: (),
    RequestStatus.CANCELLED: (),
}

TERMINAL_STATUSES = frozenset(
    status for status, allowed in ALLOWED_TRANSITIONS.items() if not allowed
)


@dataclass(frozen=True)
class StatusAction:
    """Acción disponible para llevar una solicitud a `target`."""

    target: RequestStatus
    label: str
    icon: str
    css_class: str
    confirm_title: str
    confirm_prompt: str
    destructive: bool = False


@dataclass(frozen=True)
class StatusBadge:
    text: str
    css_class: str


STATUS_ACTIONS: dict[RequestStatus, StatusAction] = {
    RequestStatus.ACCEPTED: StatusAction(
        target=RequestStatus.ACCEPTED,
        label="Aceptar Solicitud",
        icon="✓",
        css_class="btn-success",
        confirm_title="Aceptar Solicitud",
        confirm_prompt="¿Deseas aceptar esta solicitud de servicio? El cliente será notificado.",
    ),
    RequestStatus.REJECTED: StatusAction(
        target=RequestStatus.REJECTED,
        label="Rechazar Solicitud",
        icon="✗",
        css_class="btn-danger",
        confirm_title="Rechazar Solicitud",
        confirm_prompt="¿Estás seguro de rechazar esta solicitud? Esta acción no se puede deshacer.",
        destructive=True,
    ),
    RequestStatus.COMPLETED: StatusAction(
        target=RequestStatus.COMPLETED,
        label="Marcar como Completada",
        icon="✔",
        css_class="btn-success",
        confirm_title="Marcar como Completada",
        confirm_prompt="¿Confirmas que el servicio ha sido completado satisfactoriamente?",
    ),
    RequestStatus.CANCELLED: StatusAction(
        target=RequestStatus.CANCELLED,
        label="Cancelar Trabajo",
        icon="⊘",
        css_class="btn-secondary",
        confirm_title="Cancelar Trabajo",
        confirm_prompt="¿Deseas cancelar este trabajo? El cliente será notificado.",
        destructive=True,
    ),
}

STATUS_BADGES: dict[RequestStatus, StatusBadge] = {
    RequestStatus.PENDING: StatusBadge("⏳ Pendiente", "badge-warning"),
    RequestStatus.ACCEPTED: StatusBadge("✓ Aceptada", "badge-info"),
    RequestStatus.REJECTED: StatusBadge("✗ Rechazada", "badge-danger"),
    RequestStatus.COMPLETED: StatusBadge("✔ Completada", "badge-success"),
    RequestStatus.CANCELLED: StatusBadge("⊘ Cancelada", "badge-secondary"),
}


def legal_next_statuses(current: RequestStatus) -> list[RequestStatus]:
    """Estados a los que puede pasar `current`, en el orden en que se muestran."""
    return list(ALLOWED_TRANSITIONS.get(current, ()))


def is_terminal(status: RequestStatus) -> bool:
    return status in TERMINAL_STATUSES


def actions_for(current: RequestStatus) -> list[StatusAction]:
    return [STATUS_ACTIONS[target] for target in legal_next_statuses(current)]


def ensure_transition(current: RequestStatus, target: RequestStatus) -> None:
    """Lanza IllegalTransitionError si `target` no es legal desde `current`."""
    if target not in legal_next_statuses(current):
        logger.warning(f"Rejected illegal transition {current.value} -> {target.value}")
        raise IllegalTransitionError(current.value, target.value)


def status_badge(status: RequestStatus, raw_status: str = "") -> StatusBadge:
    if status is RequestStatus.UNKNOWN:
        label = raw_status or "sin estado"
        return StatusBadge(f"❓ Estado desconocido ({label})", "badge-light")
    return STATUS_BADGES[status]
