"""
Decoradores para verificar la sesión del usuario antes de ejecutar un handler.
"""

import logging
from functools import wraps
from typing import Any, Callable, Coroutine

from pydantic import ValidationError as PydanticValidationError
from telegram import Update
from telegram.ext import ContextTypes

from contacto_bot.core.exceptions import SessionExpiredError
from contacto_bot.models.user import USER_DATA_KEY, UserData

logger = logging.getLogger(__name__)

PROFESSIONAL_ONLY_MESSAGE = "⛔️ Esta opción está disponible solo para profesionales."


def load_session(context: ContextTypes.DEFAULT_TYPE) -> UserData | None:
    """Lee `userData` del almacenamiento del usuario. Devuelve None si falta o es inválido."""
    raw = context.user_data.get(USER_DATA_KEY)
    if raw is None:
        return None
    if isinstance(raw, UserData):
        return raw
    try:
        return UserData.model_validate(raw)
    except PydanticValidationError:
        logger.warning("Stored userData is invalid; discarding it.")
        context.user_data.pop(USER_DATA_KEY, None)
        return None


def require_session(professional: bool = False) -> Callable:
    """
    Decorador que exige una sesión válida (userData con `id`).

    Args:
        professional: Si es True, además exige `profesionalId`.

    Returns:
        Decorador aplicable a un handler de python-telegram-bot.
    """

    def decorator(
        func: Callable[..., Coroutine[Any, Any, Any]],
    ):
        @wraps(func)
        async def wrapper(
            update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs
        ):
            user = update.effective_user
            if not user:
                return None

            session = load_session(context)
            if session is not None and session.is_expired():
                logger.info(f"Session of user {session.id} expired.")
                context.user_data.pop(USER_DATA_KEY, None)
                session = None

            if session is None:
                denial = SessionExpiredError().user_message
            elif professional and not session.is_professional:
                denial = PROFESSIONAL_ONLY_MESSAGE
            else:
                context.user_data[USER_DATA_KEY] = session
                return await func(update, context, *args, **kwargs)

            logger.warning(
                f"Denied access to {wrapper.__name__} for Telegram user {user.id} "
                f"({user.username}). Session present: {session is not None}."
            )
            if update.callback_query:
                await update.callback_query.answer(denial, show_alert=True)
            elif update.effective_message:
                await update.effective_message.reply_text(denial)
            return None

        return wrapper

    return decorator
