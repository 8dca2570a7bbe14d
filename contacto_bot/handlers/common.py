"""
Handlers de comandos generales: inicio, login, logout y manejo de errores.

También concentra el acceso al estado por usuario: la sesión (`userData`),
el AppState y el despachador de acciones.
"""

import json
import logging
from html import escape

from telegram import Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import ContextTypes, ConversationHandler

from contacto_bot.core.config import settings
from contacto_bot.core.decorators import load_session
from contacto_bot.core.exceptions import ContactoError, LoginBlockedError
from contacto_bot.models.state import APP_STATE_KEY, AppState
from contacto_bot.models.user import USER_DATA_KEY, UserData
from contacto_bot.services.auth_service import (
    AuthService,
    LoginAttemptTracker,
    LoginFailed,
)
from contacto_bot.services.dispatcher import ActionDispatcher
from contacto_bot.services.request_store import RequestStore

logger = logging.getLogger(__name__)

LOGIN_TRACKER_KEY = "loginTracker"
LOGIN_EMAIL_KEY = "loginEmail"
DISPATCHERS_KEY = "dispatchers"

# Estados del diálogo de login
(EMAIL, PASSWORD) = range(2)

HELP_TEXT = (
    "Comandos disponibles:\n"
    "/solicitudes - Mis solicitudes como cliente\n"
    "/trabajos - Solicitudes recibidas como profesional\n"
    "/pendientes - Cantidad de solicitudes pendientes\n"
    "/detalle <id> - Ver una solicitud\n"
    "/nueva <profesionalId> [especialidadId] - Crear una solicitud\n"
    "/logout - Cerrar sesión"
)


# --- Estado por usuario ---


def current_session(context: ContextTypes.DEFAULT_TYPE) -> UserData:
    """Sesión validada por `require_session`."""
    return context.user_data[USER_DATA_KEY]


def get_app_state(context: ContextTypes.DEFAULT_TYPE) -> AppState:
    state = context.user_data.get(APP_STATE_KEY)
    if isinstance(state, AppState):
        return state
    return AppState()


def save_app_state(context: ContextTypes.DEFAULT_TYPE, state: AppState) -> AppState:
    """Único punto de escritura del AppState."""
    context.user_data[APP_STATE_KEY] = state
    logger.debug(f"AppState -> {state.view.value} ({state.role})")
    return state


def get_dispatcher(
    context: ContextTypes.DEFAULT_TYPE, user: UserData
) -> ActionDispatcher:
    """
    Devuelve el despachador del usuario, creándolo si no existe.

    Vive en `bot_data` y no en `user_data` porque contiene el cliente HTTP,
    que no se puede persistir.
    """
    dispatchers: dict[int, ActionDispatcher] = context.bot_data.setdefault(
        DISPATCHERS_KEY, {}
    )
    dispatcher = dispatchers.get(user.id)
    if dispatcher is None:
        dispatcher = ActionDispatcher(
            api=context.bot_data["api_client"], store=RequestStore(), user=user
        )
        dispatchers[user.id] = dispatcher
    else:
        # La sesión puede haberse renovado con un token nuevo
        dispatcher.user = user
    return dispatcher


def drop_dispatcher(context: ContextTypes.DEFAULT_TYPE, user_id: int) -> None:
    dispatcher = context.bot_data.get(DISPATCHERS_KEY, {}).pop(user_id, None)
    if dispatcher is not None:
        dispatcher.store.clear()


# --- Comandos ---


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Saluda al usuario y muestra los comandos según su sesión."""
    session = load_session(context)
    save_app_state(context, AppState())

    if session is None or session.is_expired():
        await update.effective_message.reply_text(
            "¡Hola! 👋 Soy el asistente de ContactoProfesionales.\n\n"
            "Para continuar inicia sesión con /login."
        )
        return

    role_text = "profesional" if session.is_professional else "cliente"
    logger.info(f"User {session.id} started the bot as {role_text}.")
    await update.effective_message.reply_html(
        f"¡Hola, {escape(session.display_name)}! 👋\n"
        f"Tu perfil: <b>{role_text}</b>.\n\n{HELP_TEXT}"
    )


def _tracker(context: ContextTypes.DEFAULT_TYPE) -> LoginAttemptTracker:
    tracker = context.user_data.get(LOGIN_TRACKER_KEY)
    if not isinstance(tracker, LoginAttemptTracker):
        tracker = LoginAttemptTracker()
        context.user_data[LOGIN_TRACKER_KEY] = tracker
    return tracker


async def login_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Inicia el diálogo de login."""
    message = update.effective_message
    tracker = _tracker(context)
    if tracker.is_blocked():
        await message.reply_text(LoginBlockedError(tracker.remaining_minutes()).user_message)
        return ConversationHandler.END

    session = load_session(context)
    if session is not None and not session.is_expired():
        await message.reply_text(
            f"Ya iniciaste sesión como {session.display_name}. Usa /logout para salir."
        )
        return ConversationHandler.END

    await message.reply_text("📧 Ingresa tu correo electrónico:")
    return EMAIL


async def login_email(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    email = (update.effective_message.text or "").strip()
    if "@" not in email:
        await update.effective_message.reply_text("Ingresa un correo electrónico válido.")
        return EMAIL

    context.user_data[LOGIN_EMAIL_KEY] = email
    await update.effective_message.reply_text(
        "🔑 Ingresa tu contraseña (el mensaje se borrará automáticamente):"
    )
    return PASSWORD


async def login_password(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Autentica al usuario. Solo las contraseñas incorrectas cuentan para el bloqueo."""
    message = update.effective_message
    password = message.text or ""
    try:
        await message.delete()
    except TelegramError as e:
        logger.warning(f"Could not delete password message: {e}")

    email = context.user_data.get(LOGIN_EMAIL_KEY, "")
    auth_service: AuthService = context.bot_data["auth_service"]
    tracker = _tracker(context)

    try:
        user = await auth_service.login(email, password, tracker)
    except LoginFailed as e:
        await message.reply_text(e.user_message)
        if e.counted and not e.blocked:
            return PASSWORD
        context.user_data.pop(LOGIN_EMAIL_KEY, None)
        return ConversationHandler.END
    except ContactoError as e:
        await message.reply_text(e.user_message)
        context.user_data.pop(LOGIN_EMAIL_KEY, None)
        return ConversationHandler.END

    context.user_data.pop(LOGIN_EMAIL_KEY, None)
    context.user_data[USER_DATA_KEY] = user
    save_app_state(context, AppState())
    await message.reply_html(
        f"✅ ¡Bienvenido, {escape(user.display_name)}!\n\n{HELP_TEXT}"
    )
    return ConversationHandler.END


async def login_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    context.user_data.pop(LOGIN_EMAIL_KEY, None)
    await update.effective_message.reply_text("Inicio de sesión cancelado.")
    return ConversationHandler.END


async def logout(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    session = load_session(context)
    context.user_data.pop(USER_DATA_KEY, None)
    context.user_data.pop(APP_STATE_KEY, None)
    if session is not None:
        drop_dispatcher(context, session.id)
        logger.info(f"User {session.id} logged out.")
    await update.effective_message.reply_text("👋 Sesión cerrada.")


async def fallback_text_handler(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Responde a mensajes de texto fuera de cualquier diálogo."""
    if load_session(context) is None:
        await update.effective_message.reply_text(
            "Para usar el asistente inicia sesión con /login."
        )
        return
    await update.effective_message.reply_text(HELP_TEXT)


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Registra errores no controlados y notifica a los administradores.
    """

    logger.error("Exception while handling an update:", exc_info=context.error)

    if isinstance(update, Update):
        update_str = json.dumps(update.to_dict(), indent=2, ensure_ascii=False)
        if update.effective_message:
            try:
                await update.effective_message.reply_text(
                    ContactoError.default_message
                )
            except TelegramError as e:
                logger.error(f"Failed to notify user about the error: {e}")
    else:
        update_str = str(update)

    message = (
        f"‼️ <b>Ocurrió un error en el bot</b> ‼️\n\n"
        f"<pre>update = {escape(update_str)}</pre>\n\n"
        f"<pre>{escape(str(context.error))}</pre>"
    )

    for admin_id in settings.admin_ids:
        try:
            # Telegram limita los mensajes a 4096 caracteres
            for x in range(0, len(message), 4096):
                await context.bot.send_message(
                    chat_id=admin_id,
                    text=message[x : x + 4096],
                    parse_mode=ParseMode.HTML,
                )
        except TelegramError as e:
            logger.error(f"Failed to send error message to admin {admin_id}: {e}")
