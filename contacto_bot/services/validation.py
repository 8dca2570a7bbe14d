"""
Validaciones del asistente de nueva solicitud.

Todas las funciones lanzan ValidationError con un mensaje para el usuario y
nunca llaman al backend.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation

from contacto_bot.core.config import settings
from contacto_bot.core.exceptions import ValidationError
from contacto_bot.models.request import DeliveryMode, ServiceRequestDraft

DESCRIPTION_MIN_LENGTH = 20
DESCRIPTION_MAX_LENGTH = 1000
NOTES_MAX_LENGTH = 500
MIN_BUDGET = Decimal("20")

# Pasos del asistente
STEP_DETAILS, STEP_LOCATION, STEP_SCHEDULE, STEP_CONFIRM = range(1, 5)
TOTAL_STEPS = 4

SERVICE_DATETIME_FORMATS = ("%Y-%m-%d %H:%M", "%d/%m/%Y %H:%M")


def validate_description(text: str | None) -> str:
    description = (text or "").strip()
    if len(description) < DESCRIPTION_MIN_LENGTH:
        raise ValidationError(
            f"La descripción debe tener al menos {DESCRIPTION_MIN_LENGTH} caracteres"
        )
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"La descripción no puede superar los {DESCRIPTION_MAX_LENGTH} caracteres"
        )
    return description


def parse_budget(text: str | Decimal | None) -> Decimal:
    try:
        budget = Decimal(str(text).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        budget = None
    if budget is None or not budget.is_finite() or budget < MIN_BUDGET:
        raise ValidationError("Debes ingresar un presupuesto válido (mínimo S/20)")
    return budget.quantize(Decimal("0.01"))


def parse_service_datetime(text: str, now: datetime | None = None) -> datetime:
    """Interpreta 'AAAA-MM-DD HH:MM' (o 'DD/MM/AAAA HH:MM'); no se aceptan fechas pasadas."""
    value = (text or "").strip()
    for fmt in SERVICE_DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
            break
        except ValueError:
            continue
    else:
        raise ValidationError("Debes indicar fecha y hora, por ejemplo 2025-12-20 15:30")
    _ensure_not_past(parsed, now)
    return parsed


def _ensure_not_past(moment: datetime, now: datetime | None) -> None:
    today = (now or datetime.now()).date()
    if moment.date() < today:
        raise ValidationError("La fecha del servicio no puede ser anterior a hoy")


def validate_notes(text: str | None) -> str:
    notes = (text or "").strip()
    if len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(
            f"Las notas adicionales no pueden superar los {NOTES_MAX_LENGTH} caracteres"
        )
    return notes


def validate_photo(
    file_size: int | None, mime_type: str | None, current_count: int
) -> None:
    if current_count >= settings.max_photos:
        raise ValidationError(f"Solo puedes adjuntar hasta {settings.max_photos} fotos")
    if mime_type and not mime_type.startswith("image/"):
        raise ValidationError("El archivo debe ser una imagen")
    if file_size is not None and file_size > settings.max_photo_size_bytes:
        max_mb = settings.max_photo_size_bytes // (1024 * 1024)
        raise ValidationError(f"La foto no debe superar los {max_mb}MB")


def validate_step(
    draft: ServiceRequestDraft, step: int, now: datetime | None = None
) -> None:
    """Valida un paso del asistente antes de avanzar al siguiente."""
    if step == STEP_DETAILS:
        validate_description(draft.description)
        parse_budget(draft.estimated_budget)

    elif step == STEP_LOCATION:
        if draft.delivery_mode is None:
            raise ValidationError(
                "Debes seleccionar una modalidad de trabajo (Remoto o Presencial)"
            )
        # Solo la modalidad presencial exige dirección
        if draft.delivery_mode == DeliveryMode.ON_SITE:
            address = draft.address
            if not (address.region and address.province and address.district):
                raise ValidationError("Debes seleccionar departamento, provincia y distrito")
            if not (address.address_line or "").strip():
                raise ValidationError("Debes ingresar la dirección exacta del servicio")

    elif step == STEP_SCHEDULE:
        if draft.service_datetime is None:
            raise ValidationError("Debes seleccionar fecha y hora")
        _ensure_not_past(draft.service_datetime, now)
        validate_notes(draft.notes)
        if len(draft.photos) > settings.max_photos:
            raise ValidationError(f"Solo puedes adjuntar hasta {settings.max_photos} fotos")

    elif step == STEP_CONFIRM:
        if not draft.terms_accepted:
            raise ValidationError("Debes aceptar los términos y condiciones")

    else:
        raise ValueError(f"Unknown wizard step: {step}")


def validate_draft(draft: ServiceRequestDraft, now: datetime | None = None) -> None:
    """Valida el borrador completo antes de enviarlo."""
    for step in range(1, TOTAL_STEPS + 1):
        validate_step(draft, step, now=now)
