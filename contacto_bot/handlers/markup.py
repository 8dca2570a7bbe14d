"""
Traduce los modelos de vista del renderer a texto HTML y teclados inline.

Formato de callback_data: "<acción>:<id>[:<dato>]".
"""

from html import escape

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from contacto_bot.models.state import Role
from contacto_bot.services.renderer import (
    ConfirmationView,
    RequestDetailView,
    RequestListView,
    RequestRow,
)

# Prefijos de callback_data
SHOW_DETAIL = "detail"
ASK_TRANSITION = "trans"
CONFIRM_TRANSITION = "confirm"
ABORT_TRANSITION = "abort"
ASK_CLIENT_CANCEL = "ccancel"
CONFIRM_CLIENT_CANCEL = "cconfirm"
NOOP = "noop"

CALLBACK_PATTERN = (
    rf"^({SHOW_DETAIL}|{ASK_TRANSITION}|{CONFIRM_TRANSITION}|{ABORT_TRANSITION}"
    rf"|{ASK_CLIENT_CANCEL}|{CONFIRM_CLIENT_CANCEL}|{NOOP}):"
)


def _lines(pairs) -> list[str]:
    return [f"<b>{escape(label)}:</b> {escape(value)}" for label, value in pairs]


def detail_message(view: RequestDetailView, role: Role) -> tuple[str, InlineKeyboardMarkup]:
    parts = [
        f"📋 <b>{escape(view.code)}</b>",
        f"Estado: {escape(view.badge.text)}",
        "",
        *_lines(view.fields),
        "",
        f"<b>Descripción:</b>\n{escape(view.description)}",
    ]
    if view.location:
        parts += ["", "📍 <b>Ubicación</b>", *_lines(view.location)]
    if view.notes:
        parts += ["", f"<b>Notas adicionales:</b>\n{escape(view.notes)}"]
    if view.photo_urls:
        parts += ["", f"📷 {len(view.photo_urls)} imagen(es) adjunta(s)"]
    if view.final_panel:
        parts += ["", f"🔒 {escape(view.final_panel)}"]
    if view.unknown_panel:
        parts += ["", f"⚠️ {escape(view.unknown_panel)}"]

    keyboard = []
    for button in view.actions:
        if button.enabled:
            callback = f"{ASK_TRANSITION}:{view.request_id}:{button.target.value}"
        else:
            callback = f"{NOOP}:{view.request_id}"
        keyboard.append([InlineKeyboardButton(button.text, callback_data=callback)])
    for index, url in enumerate(view.photo_urls, start=1):
        if url.startswith("http"):
            keyboard.append([InlineKeyboardButton(f"🖼 Imagen {index}", url=url)])
    keyboard.append(
        [
            InlineKeyboardButton(
                "🔄 Actualizar", callback_data=f"{SHOW_DETAIL}:{view.request_id}:{role}"
            )
        ]
    )
    return "\n".join(parts), InlineKeyboardMarkup(keyboard)


def confirmation_message(view: ConfirmationView) -> tuple[str, InlineKeyboardMarkup]:
    confirm_icon = "⚠️" if view.confirm_css_class == "btn-danger" else "✅"
    text = f"<b>{escape(view.title)}</b>\n\n{escape(view.prompt)}"
    keyboard = [
        [
            InlineKeyboardButton(
                f"{confirm_icon} Confirmar",
                callback_data=f"{CONFIRM_TRANSITION}:{view.request_id}:{view.target.value}",
            ),
            InlineKeyboardButton(
                "Volver", callback_data=f"{ABORT_TRANSITION}:{view.request_id}"
            ),
        ]
    ]
    return text, InlineKeyboardMarkup(keyboard)


def list_header(view: RequestListView) -> str:
    stats = view.stats
    title = "Mis solicitudes" if view.role == "cliente" else "Mis trabajos"
    header = [
        f"--- 📑 {title} ---",
        f"Total: <b>{stats.total}</b> | Pendientes: <b>{stats.pending}</b> | "
        f"Completadas: <b>{stats.completed}</b>",
        f"Presupuesto total: <b>{escape(stats.budget_total)}</b>",
        escape(view.results_text),
    ]
    if view.role == "profesional" and stats.pending:
        header.insert(1, f"🔔 Tienes {stats.pending} solicitud(es) pendiente(s)")
    return "\n".join(header)


def row_message(row: RequestRow, role: Role) -> tuple[str, InlineKeyboardMarkup]:
    text = (
        f"<b>{escape(row.code)}</b> {escape(row.badge.text)}\n"
        f"{escape(row.counterpart)} · {escape(row.urgency)}\n"
        f"{escape(row.description_preview)}\n"
        f"📅 {escape(row.service_date)} · 💰 {escape(row.budget)} · 📍 {escape(row.district)}"
    )
    buttons = [
        InlineKeyboardButton(
            "👁️ Ver Detalles", callback_data=f"{SHOW_DETAIL}:{row.request_id}:{role}"
        )
    ]
    if row.can_cancel:
        buttons.append(
            InlineKeyboardButton(
                "❌ Cancelar", callback_data=f"{ASK_CLIENT_CANCEL}:{row.request_id}"
            )
        )
    return text, InlineKeyboardMarkup([buttons])


def client_cancel_confirmation(request_id: int) -> tuple[str, InlineKeyboardMarkup]:
    keyboard = [
        [
            InlineKeyboardButton(
                "⚠️ Sí, cancelar",
                callback_data=f"{CONFIRM_CLIENT_CANCEL}:{request_id}",
            ),
            InlineKeyboardButton("Volver", callback_data=f"{ABORT_TRANSITION}:{request_id}"),
        ]
    ]
    return "¿Estás seguro que deseas cancelar esta solicitud?", InlineKeyboardMarkup(keyboard)


def stale_message(message: str, request_id: int, role: Role) -> tuple[str, InlineKeyboardMarkup]:
    """Vista sin acciones: solo permite volver a leer la solicitud."""
    keyboard = [
        [
            InlineKeyboardButton(
                "🔄 Actualizar", callback_data=f"{SHOW_DETAIL}:{request_id}:{role}"
            )
        ]
    ]
    return f"⚠️ {escape(message)}", InlineKeyboardMarkup(keyboard)
