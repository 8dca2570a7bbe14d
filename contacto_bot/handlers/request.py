"""
Handlers de solicitudes de servicio: listado, detalle, cambios de estado y el
asistente de creación de una nueva solicitud.
"""

import base64
import logging
from dataclasses import replace
from html import escape

from telegram import ReplyKeyboardMarkup, ReplyKeyboardRemove, Update
from telegram.constants import ParseMode
from telegram.error import BadRequest
from telegram.ext import ContextTypes, ConversationHandler

from contacto_bot.core.config import settings
from contacto_bot.core.decorators import (
    PROFESSIONAL_ONLY_MESSAGE,
    load_session,
    require_session,
)
from contacto_bot.core.exceptions import (
    ApiError,
    AuthorizationError,
    ContactoError,
    IllegalTransitionError,
    NotFoundError,
    SessionExpiredError,
    StaleViewError,
    ValidationError,
)
from contacto_bot.handlers import markup
from contacto_bot.handlers.common import (
    current_session,
    get_app_state,
    get_dispatcher,
    save_app_state,
)
from contacto_bot.models.location import Location
from contacto_bot.models.request import (
    DeliveryMode,
    RequestStatus,
    ServiceRequest,
    ServiceRequestDraft,
)
from contacto_bot.models.state import ListOrder, RequestListFilters, Role
from contacto_bot.services.dispatcher import ActionDispatcher
from contacto_bot.services.location_service import LocationService
from contacto_bot.services.renderer import (
    format_datetime,
    format_money,
    modality_label,
    render_confirmation,
    render_request_detail,
    render_request_list,
    urgency_label,
)
from contacto_bot.services.status_policy import actions_for
from contacto_bot.services.validation import (
    STEP_CONFIRM,
    STEP_DETAILS,
    STEP_LOCATION,
    STEP_SCHEDULE,
    TOTAL_STEPS,
    parse_budget,
    parse_service_datetime,
    validate_description,
    validate_notes,
    validate_photo,
    validate_step,
)

logger = logging.getLogger(__name__)

MAX_ROWS_PER_LIST = 15
ORDERS: tuple[ListOrder, ...] = ("reciente", "antiguo", "presupuesto")

SUCCESS_TOASTS = {
    RequestStatus.ACCEPTED: "✅ Solicitud aceptada exitosamente",
    RequestStatus.REJECTED: "Solicitud rechazada",
    RequestStatus.COMPLETED: "✅ Trabajo marcado como completado",
    RequestStatus.CANCELLED: "Trabajo cancelado",
}


# --- Utilidades ---


def parse_list_args(args: list[str]) -> RequestListFilters:
    """
    Interpreta los argumentos de /solicitudes y /trabajos.

    Un estado conocido filtra por estado, un orden conocido ordena y el resto
    se usa como texto de búsqueda.
    """
    status = None
    order = None
    search_words = []
    known_statuses = {s.value: s for s in RequestStatus if s is not RequestStatus.UNKNOWN}
    for arg in args:
        word = arg.strip().lower()
        if word in known_statuses:
            status = known_statuses[word]
        elif word in ORDERS:
            order = word
        else:
            search_words.append(arg)
    return RequestListFilters(status=status, search=" ".join(search_words), order=order)


async def _edit(query, text: str, reply_markup=None) -> None:
    """Edita el mensaje del callback; ignora el error de 'mensaje sin cambios'."""
    try:
        await query.edit_message_text(
            text=text, reply_markup=reply_markup, parse_mode=ParseMode.HTML
        )
    except BadRequest as e:
        if "not modified" not in str(e).lower():
            raise


def _detail_markup(
    dispatcher: ActionDispatcher, request: ServiceRequest, role: Role, busy: bool = False
):
    view = render_request_detail(request, busy=busy or dispatcher.is_busy(request.id))
    if role != "profesional":
        # El cliente no cambia estados desde el detalle
        view = replace(view, actions=())
    return markup.detail_message(view, role)


# --- Listado ---


async def _send_list(
    update: Update, context: ContextTypes.DEFAULT_TYPE, role: Role
) -> None:
    message = update.effective_message
    dispatcher = get_dispatcher(context, current_session(context))
    filters = parse_list_args(context.args or [])

    try:
        requests = await dispatcher.refresh_list(role)
    except ContactoError as e:
        await message.reply_text(e.user_message)
        return

    save_app_state(context, get_app_state(context).show_list(role, filters))
    view = render_request_list(requests, role, filters)
    await message.reply_html(markup.list_header(view))

    if view.empty_text:
        return
    for row in view.rows[:MAX_ROWS_PER_LIST]:
        text, reply_markup = markup.row_message(row, role)
        await message.reply_html(text, reply_markup=reply_markup)
    if len(view.rows) > MAX_ROWS_PER_LIST:
        await message.reply_text(
            f"Mostrando {MAX_ROWS_PER_LIST} de {len(view.rows)}. "
            "Usa filtros para acotar la búsqueda, por ejemplo: /trabajos pendiente"
        )


@require_session()
async def show_client_requests(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/solicitudes [estado] [orden] [texto]"""
    await _send_list(update, context, "cliente")


@require_session(professional=True)
async def show_professional_requests(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """/trabajos [estado] [orden] [texto]"""
    await _send_list(update, context, "profesional")


@require_session(professional=True)
async def show_pending_count(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    dispatcher = get_dispatcher(context, current_session(context))
    try:
        count = await dispatcher.fetch_pending_count()
    except ContactoError as e:
        await update.effective_message.reply_text(e.user_message)
        return

    if count:
        text = f"🔔 Tienes {count} solicitud(es) pendiente(s). Revísalas con /trabajos pendiente"
    else:
        text = "No tienes solicitudes pendientes."
    await update.effective_message.reply_text(text)


# --- Detalle ---


@require_session()
async def show_request_detail(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/detalle <id>: muestra la solicitud con el rol de la vista actual."""
    message = update.effective_message
    session = current_session(context)
    try:
        request_id = int(context.args[0])
    except (IndexError, TypeError, ValueError):
        await message.reply_text("Uso: /detalle <id de la solicitud>")
        return

    role: Role = get_app_state(context).role
    if role == "profesional" and not session.is_professional:
        role = "cliente"
    dispatcher = get_dispatcher(context, session)
    try:
        request = await dispatcher.refresh_detail(request_id, role)
    except ContactoError as e:
        await message.reply_text(e.user_message)
        return

    save_app_state(context, get_app_state(context).show_detail(request_id, role))
    text, reply_markup = _detail_markup(dispatcher, request, role)
    await message.reply_html(text, reply_markup=reply_markup)


# --- Callbacks de botones inline ---


@require_session()
async def request_callback_handler(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """
    Atiende los botones de listado y detalle.

    Cada rama responde el callback una sola vez, con un aviso breve o una alerta.
    """
    query = update.callback_query
    session = current_session(context)
    dispatcher = get_dispatcher(context, session)

    parts = query.data.split(":")
    action = parts[0]
    try:
        request_id = int(parts[1])
    except (IndexError, ValueError):
        logger.warning(f"Malformed callback data: {query.data!r}")
        await query.answer()
        return

    if action == markup.NOOP:
        await query.answer("⏳ Procesando...")
        return

    professional_actions = (markup.ASK_TRANSITION, markup.CONFIRM_TRANSITION)
    if action in professional_actions and len(parts) < 3:
        logger.warning(f"Callback data without target status: {query.data!r}")
        await query.answer()
        return

    if action in professional_actions and not session.is_professional:
        await query.answer(PROFESSIONAL_ONLY_MESSAGE, show_alert=True)
        return

    try:
        if action == markup.SHOW_DETAIL:
            role: Role = "profesional" if parts[2:3] == ["profesional"] else "cliente"
            if role == "profesional" and not session.is_professional:
                await query.answer(PROFESSIONAL_ONLY_MESSAGE, show_alert=True)
                return
            request = await dispatcher.refresh_detail(request_id, role)
            save_app_state(context, get_app_state(context).show_detail(request_id, role))
            text, reply_markup = _detail_markup(dispatcher, request, role)
            await _edit(query, text, reply_markup)
            await query.answer()

        elif action == markup.ASK_TRANSITION:
            await _ask_transition(query, dispatcher, request_id, RequestStatus.parse(parts[2]))

        elif action == markup.CONFIRM_TRANSITION:
            await _confirm_transition(query, dispatcher, request_id, RequestStatus.parse(parts[2]))

        elif action == markup.ABORT_TRANSITION:
            role = get_app_state(context).role
            request = dispatcher.store.get(request_id) or await dispatcher.refresh_detail(
                request_id, role
            )
            text, reply_markup = _detail_markup(dispatcher, request, role)
            await _edit(query, text, reply_markup)
            await query.answer()

        elif action == markup.ASK_CLIENT_CANCEL:
            text, reply_markup = markup.client_cancel_confirmation(request_id)
            await _edit(query, text, reply_markup)
            await query.answer()

        elif action == markup.CONFIRM_CLIENT_CANCEL:
            await _confirm_client_cancel(query, dispatcher, request_id)

        else:
            logger.warning(f"Unknown callback action: {action}")
            await query.answer()

    except (AuthorizationError, NotFoundError) as e:
        # Sin permiso o inexistente: se retira el detalle y sus acciones
        await _edit(query, f"⛔️ {escape(e.user_message)}")
        await query.answer(e.user_message, show_alert=True)
    except ContactoError as e:
        await query.answer(e.user_message, show_alert=True)


async def _ask_transition(
    query, dispatcher: ActionDispatcher, request_id: int, target: RequestStatus
) -> None:
    request = dispatcher.store.get(request_id) or await dispatcher.refresh_detail(request_id)
    action = next((a for a in actions_for(request.status) if a.target is target), None)
    if action is None:
        raise IllegalTransitionError(request.status.value, target.value)
    text, reply_markup = markup.confirmation_message(render_confirmation(request_id, action))
    await _edit(query, text, reply_markup)
    await query.answer()


async def _confirm_transition(
    query, dispatcher: ActionDispatcher, request_id: int, target: RequestStatus
) -> None:
    """Aplica la transición. Ante un error vuelve a mostrar el detalle con sus acciones."""
    current = dispatcher.store.get(request_id)
    if current is not None:
        text, reply_markup = _detail_markup(dispatcher, current, "profesional", busy=True)
        await _edit(query, text, reply_markup)

    try:
        refreshed = await dispatcher.request_transition(request_id, target)
    except (AuthorizationError, NotFoundError):
        raise
    except StaleViewError as e:
        # Aplicado en el backend: no se vuelven a ofrecer las acciones anteriores
        text, reply_markup = markup.stale_message(e.user_message, request_id, "profesional")
        await _edit(query, text, reply_markup)
        await query.answer(e.user_message, show_alert=True)
        return
    except ContactoError as e:
        latest = dispatcher.store.get(request_id)
        if latest is not None:
            text, reply_markup = _detail_markup(dispatcher, latest, "profesional")
            await _edit(query, text, reply_markup)
        await query.answer(e.user_message, show_alert=True)
        return

    text, reply_markup = _detail_markup(dispatcher, refreshed, "profesional")
    await _edit(query, text, reply_markup)
    await query.answer(SUCCESS_TOASTS.get(target, "Estado actualizado"))


async def _confirm_client_cancel(
    query, dispatcher: ActionDispatcher, request_id: int
) -> None:
    requests = await dispatcher.cancel_as_client(request_id)

    cancelled = [item for item in requests if item.id == request_id]
    if cancelled:
        row = render_request_list(cancelled, "cliente").rows[0]
        text, reply_markup = markup.row_message(row, "cliente")
        await _edit(query, text, reply_markup)
    else:
        await _edit(query, "❌ Solicitud cancelada.")
    await query.answer("Solicitud cancelada exitosamente")


# --- Asistente de nueva solicitud ---

DRAFT_KEY = "draftRequest"
ALLOWED_MODES_KEY = "allowedModes"
LOCATION_OPTIONS_KEY = "locationOptions"

(
    DESCRIPTION,
    BUDGET,
    MODALITY,
    DEPARTMENT,
    PROVINCE,
    DISTRICT,
    ADDRESS,
    REFERENCE,
    SCHEDULE,
    URGENCY,
    NOTES,
    PHOTOS,
    CONFIRM,
) = range(13)

MODE_LABELS = {
    "💻 Remoto": DeliveryMode.REMOTE,
    "📍 Presencial": DeliveryMode.ON_SITE,
}
URGENCY_LABELS = {"📅 Normal": "normal", "🔥 Urgente": "urgent"}
ACCEPT_TERMS_TEXT = "✅ Acepto los términos y envío la solicitud"
CANCEL_TEXT = "❌ Cancelar"


def _step(step: int) -> str:
    return f"<b>Paso {step}/{TOTAL_STEPS}:</b>"


def _draft(context: ContextTypes.DEFAULT_TYPE) -> ServiceRequestDraft:
    return context.user_data[DRAFT_KEY]


def _options_keyboard(labels: list[str], columns: int = 2) -> ReplyKeyboardMarkup:
    rows = [labels[i : i + columns] for i in range(0, len(labels), columns)]
    return ReplyKeyboardMarkup(rows, one_time_keyboard=True, resize_keyboard=True)


def _clear_wizard(context: ContextTypes.DEFAULT_TYPE) -> None:
    for key in (DRAFT_KEY, ALLOWED_MODES_KEY, LOCATION_OPTIONS_KEY):
        context.user_data.pop(key, None)


@require_session()
async def new_request_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """/nueva <profesionalId> [especialidadId]"""
    message = update.effective_message
    try:
        professional_id = int(context.args[0])
        speciality_id = int(context.args[1]) if len(context.args) > 1 else None
    except (IndexError, TypeError, ValueError):
        await message.reply_text("Uso: /nueva <profesionalId> [especialidadId]")
        return ConversationHandler.END

    allowed = [DeliveryMode.REMOTE, DeliveryMode.ON_SITE]
    if speciality_id is not None:
        try:
            modality = await context.bot_data["api_client"].get_work_modality(speciality_id)
        except ApiError as e:
            logger.warning(f"Could not load modality of speciality {speciality_id}: {e}")
        else:
            allowed = modality.allowed_modes() or allowed

    context.user_data[DRAFT_KEY] = ServiceRequestDraft(
        professional_id=professional_id, speciality_id=speciality_id
    )
    context.user_data[ALLOWED_MODES_KEY] = [mode.value for mode in allowed]
    logger.info(
        f"User {current_session(context).id} started a request for professional "
        f"{professional_id}."
    )

    await message.reply_html(
        "Vamos a crear una nueva solicitud. Puedes salir en cualquier momento con /cancel.\n\n"
        f"{_step(STEP_DETAILS)} Describe el servicio que necesitas (mínimo 20 caracteres)."
    )
    return DESCRIPTION


async def get_description(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.effective_message
    try:
        _draft(context).description = validate_description(message.text)
    except ValidationError as e:
        await message.reply_text(e.user_message)
        return DESCRIPTION

    await message.reply_text("💰 Ingresa tu presupuesto estimado en soles (mínimo S/20):")
    return BUDGET


async def get_budget(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.effective_message
    draft = _draft(context)
    try:
        draft.estimated_budget = parse_budget(message.text)
        validate_step(draft, STEP_DETAILS)
    except ValidationError as e:
        await message.reply_text(e.user_message)
        return BUDGET

    allowed = context.user_data.get(ALLOWED_MODES_KEY, [])
    labels = [label for label, mode in MODE_LABELS.items() if mode.value in allowed]
    await message.reply_html(
        f"{_step(STEP_LOCATION)} Elige la modalidad del servicio.",
        reply_markup=_options_keyboard(labels),
    )
    return MODALITY


async def _ask_schedule(message) -> int:
    await message.reply_html(
        f"{_step(STEP_SCHEDULE)} Indica fecha y hora del servicio "
        "(por ejemplo 2025-12-20 15:30):",
        reply_markup=ReplyKeyboardRemove(),
    )
    return SCHEDULE


async def _ask_location(
    message, context: ContextTypes.DEFAULT_TYPE, title: str, locations: list[Location]
) -> None:
    context.user_data[LOCATION_OPTIONS_KEY] = locations
    await message.reply_text(
        title, reply_markup=_options_keyboard([loc.name for loc in locations])
    )


def _pick_location(context: ContextTypes.DEFAULT_TYPE, text: str) -> Location | None:
    options = context.user_data.get(LOCATION_OPTIONS_KEY) or []
    return LocationService.find_by_name(options, text)


async def get_modality(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.effective_message
    mode = MODE_LABELS.get((message.text or "").strip())
    if mode is None or mode.value not in context.user_data.get(ALLOWED_MODES_KEY, []):
        await message.reply_text(
            "Debes seleccionar una modalidad de trabajo usando los botones."
        )
        return MODALITY

    draft = _draft(context)
    draft.delivery_mode = mode
    draft.clear_address()
    if mode == DeliveryMode.REMOTE:
        return await _ask_schedule(message)

    location_service: LocationService = context.bot_data["location_service"]
    try:
        departments = await location_service.get_departments()
    except ContactoError as e:
        await message.reply_text(e.user_message)
        return MODALITY
    await _ask_location(message, context, "🗺️ Selecciona el departamento:", departments)
    return DEPARTMENT


async def get_department(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.effective_message
    department = _pick_location(context, message.text)
    if department is None:
        await message.reply_text("Selecciona un departamento de la lista.")
        return DEPARTMENT

    address = _draft(context).address
    address.region, address.region_id = department.name, department.id
    address.province = address.province_id = None
    address.district = address.district_id = None

    location_service: LocationService = context.bot_data["location_service"]
    try:
        provinces = await location_service.get_provinces(department.id)
    except ContactoError as e:
        await message.reply_text(e.user_message)
        return DEPARTMENT
    await _ask_location(message, context, "Selecciona la provincia:", provinces)
    return PROVINCE


async def get_province(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.effective_message
    province = _pick_location(context, message.text)
    if province is None:
        await message.reply_text("Selecciona una provincia de la lista.")
        return PROVINCE

    address = _draft(context).address
    address.province, address.province_id = province.name, province.id
    address.district = address.district_id = None

    location_service: LocationService = context.bot_data["location_service"]
    try:
        districts = await location_service.get_districts(province.id)
    except ContactoError as e:
        await message.reply_text(e.user_message)
        return PROVINCE
    await _ask_location(message, context, "Selecciona el distrito:", districts)
    return DISTRICT


async def get_district(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.effective_message
    district = _pick_location(context, message.text)
    if district is None:
        await message.reply_text("Selecciona un distrito de la lista.")
        return DISTRICT

    address = _draft(context).address
    address.district, address.district_id = district.name, district.id
    context.user_data.pop(LOCATION_OPTIONS_KEY, None)
    await message.reply_text(
        "🏠 Ingresa la dirección exacta del servicio:", reply_markup=ReplyKeyboardRemove()
    )
    return ADDRESS


async def get_address(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.effective_message
    draft = _draft(context)
    draft.address.address_line = (message.text or "").strip()
    try:
        validate_step(draft, STEP_LOCATION)
    except ValidationError as e:
        await message.reply_text(e.user_message)
        return ADDRESS

    await message.reply_text(
        "Agrega una referencia para llegar (opcional). Si no es necesaria, usa /skip."
    )
    return REFERENCE


async def get_reference(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    _draft(context).address.reference = (update.effective_message.text or "").strip()
    return await _ask_schedule(update.effective_message)


async def skip_reference(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    return await _ask_schedule(update.effective_message)


async def get_schedule(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.effective_message
    try:
        _draft(context).service_datetime = parse_service_datetime(message.text)
    except ValidationError as e:
        await message.reply_text(e.user_message)
        return SCHEDULE

    await message.reply_text(
        "⏰ ¿Qué urgencia tiene el servicio?",
        reply_markup=_options_keyboard(list(URGENCY_LABELS)),
    )
    return URGENCY


async def get_urgency(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.effective_message
    urgency = URGENCY_LABELS.get((message.text or "").strip())
    if urgency is None:
        await message.reply_text("Selecciona la urgencia usando los botones.")
        return URGENCY

    _draft(context).urgency = urgency
    await message.reply_text(
        "📝 Agrega notas adicionales (máximo 500 caracteres) o usa /skip.",
        reply_markup=ReplyKeyboardRemove(),
    )
    return NOTES


async def _ask_photos(message) -> int:
    await message.reply_text(
        f"📷 Adjunta hasta {settings.max_photos} fotos del problema "
        f"(máximo {settings.max_photo_size_bytes // (1024 * 1024)}MB cada una). "
        "Cuando termines, o si no tienes fotos, usa /listo."
    )
    return PHOTOS


async def get_notes(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.effective_message
    try:
        _draft(context).notes = validate_notes(message.text)
    except ValidationError as e:
        await message.reply_text(e.user_message)
        return NOTES
    return await _ask_photos(message)


async def skip_notes(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    _draft(context).notes = None
    return await _ask_photos(update.effective_message)


async def get_photo(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Descarga la foto (o imagen enviada como documento) y la guarda en base64."""
    message = update.effective_message
    draft = _draft(context)

    if message.photo:
        attachment = message.photo[-1]
        mime_type = "image/jpeg"
    else:
        attachment = message.document
        mime_type = attachment.mime_type

    try:
        validate_photo(attachment.file_size, mime_type, len(draft.photos))
        telegram_file = await context.bot.get_file(attachment.file_id)
        content = await telegram_file.download_as_bytearray()
        validate_photo(len(content), mime_type, len(draft.photos))
    except ValidationError as e:
        await message.reply_text(e.user_message)
        return PHOTOS

    encoded = base64.b64encode(bytes(content)).decode("ascii")
    draft.photos.append(f"data:{mime_type};base64,{encoded}")
    await message.reply_text(
        f"Foto {len(draft.photos)}/{settings.max_photos} recibida. "
        "Envía otra o usa /listo para continuar."
    )
    return PHOTOS


def draft_summary(draft: ServiceRequestDraft) -> str:
    lines = [
        "<b>Resumen de tu solicitud</b>",
        "",
        f"<b>Descripción:</b> {escape(draft.description or '-')}",
        f"<b>Presupuesto:</b> {format_money(draft.estimated_budget)}",
        f"<b>Modalidad:</b> {modality_label(draft.delivery_mode)}",
    ]
    if draft.delivery_mode == DeliveryMode.ON_SITE:
        lines.append(f"<b>Ubicación:</b> {escape(draft.address.one_line())}")
        if draft.address.reference:
            lines.append(f"<b>Referencia:</b> {escape(draft.address.reference)}")
    lines += [
        f"<b>Fecha del servicio:</b> {format_datetime(draft.service_datetime)}",
        f"<b>Urgencia:</b> {urgency_label(draft.urgency)}",
        f"<b>Notas:</b> {escape(draft.notes or '-')}",
        f"<b>Fotos:</b> {len(draft.photos)}",
    ]
    return "\n".join(lines)


async def photos_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.effective_message
    draft = _draft(context)
    try:
        validate_step(draft, STEP_SCHEDULE)
    except ValidationError as e:
        await message.reply_text(e.user_message)
        return await _ask_schedule(message)

    await message.reply_html(
        f"{_step(STEP_CONFIRM)} Revisa los datos y acepta los términos y condiciones.\n\n"
        f"{draft_summary(draft)}",
        reply_markup=_options_keyboard([ACCEPT_TERMS_TEXT, CANCEL_TEXT], columns=1),
    )
    return CONFIRM


async def confirm_request(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Envía la solicitud. Un error de conexión permite reintentar desde este paso."""
    message = update.effective_message
    if (message.text or "").strip() != ACCEPT_TERMS_TEXT:
        return await cancel(update, context)

    session = load_session(context)
    if session is None:
        _clear_wizard(context)
        await message.reply_text(
            SessionExpiredError().user_message, reply_markup=ReplyKeyboardRemove()
        )
        return ConversationHandler.END

    draft = _draft(context)
    draft.terms_accepted = True
    await message.reply_text("Enviando solicitud...", reply_markup=ReplyKeyboardRemove())

    try:
        code = await get_dispatcher(context, session).submit_request(draft)
    except ValidationError as e:
        _clear_wizard(context)
        await message.reply_text(
            f"{e.user_message}. Inicia nuevamente con /nueva."
        )
        return ConversationHandler.END
    except ContactoError as e:
        await message.reply_text(
            e.user_message,
            reply_markup=_options_keyboard([ACCEPT_TERMS_TEXT, CANCEL_TEXT], columns=1),
        )
        return CONFIRM

    _clear_wizard(context)
    await message.reply_html(
        f"✅ ¡Solicitud enviada exitosamente!\n\nCódigo: <b>{escape(code)}</b>\n"
        "El profesional revisará tu solicitud. Puedes seguirla con /solicitudes."
    )
    return ConversationHandler.END


async def cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Cancela el asistente."""
    _clear_wizard(context)
    await update.effective_message.reply_text(
        "Creación de solicitud cancelada.", reply_markup=ReplyKeyboardRemove()
    )
    return ConversationHandler.END
