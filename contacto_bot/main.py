"""
Punto de entrada de la aplicación.

Inicializa los servicios y arranca el bot de Telegram en modo polling.
"""

import logging

from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ConversationHandler,
    MessageHandler,
    PersistenceInput,
    PicklePersistence,
    filters,
)

from contacto_bot.core.config import settings
from contacto_bot.core.logging_config import setup_logging
from contacto_bot.handlers import common, markup
from contacto_bot.handlers import request as request_handler
from contacto_bot.services.api_client import ContactoAPIClient
from contacto_bot.services.auth_service import AuthService
from contacto_bot.services.location_service import LocationService

logger = logging.getLogger(__name__)

TEXT = filters.TEXT & ~filters.COMMAND


async def close_services(application: Application) -> None:
    """Cierra el cliente HTTP al detener el bot."""
    await application.bot_data["api_client"].aclose()
    logger.info("API client closed.")


def build_login_handler() -> ConversationHandler:
    return ConversationHandler(
        entry_points=[CommandHandler("login", common.login_start)],
        states={
            common.EMAIL: [MessageHandler(TEXT, common.login_email)],
            common.PASSWORD: [MessageHandler(TEXT, common.login_password)],
        },
        fallbacks=[CommandHandler("cancel", common.login_cancel)],
    )


def build_new_request_handler() -> ConversationHandler:
    return ConversationHandler(
        entry_points=[CommandHandler("nueva", request_handler.new_request_start)],
        states={
            request_handler.DESCRIPTION: [MessageHandler(TEXT, request_handler.get_description)],
            request_handler.BUDGET: [MessageHandler(TEXT, request_handler.get_budget)],
            request_handler.MODALITY: [MessageHandler(TEXT, request_handler.get_modality)],
            request_handler.DEPARTMENT: [MessageHandler(TEXT, request_handler.get_department)],
            request_handler.PROVINCE: [MessageHandler(TEXT, request_handler.get_province)],
            request_handler.DISTRICT: [MessageHandler(TEXT, request_handler.get_district)],
            request_handler.ADDRESS: [MessageHandler(TEXT, request_handler.get_address)],
            request_handler.REFERENCE: [
                MessageHandler(TEXT, request_handler.get_reference),
                CommandHandler("skip", request_handler.skip_reference),
            ],
            request_handler.SCHEDULE: [MessageHandler(TEXT, request_handler.get_schedule)],
            request_handler.URGENCY: [MessageHandler(TEXT, request_handler.get_urgency)],
            request_handler.NOTES: [
                MessageHandler(TEXT, request_handler.get_notes),
                CommandHandler("skip", request_handler.skip_notes),
            ],
            request_handler.PHOTOS: [
                MessageHandler(
                    filters.PHOTO | filters.Document.IMAGE, request_handler.get_photo
                ),
                CommandHandler("listo", request_handler.photos_done),
            ],
            request_handler.CONFIRM: [MessageHandler(TEXT, request_handler.confirm_request)],
        },
        fallbacks=[CommandHandler("cancel", request_handler.cancel)],
    )


def main() -> None:
    """Función principal para arrancar el bot."""
    setup_logging(settings.log_level)

    logger.info("Initializing services...")
    api_client = ContactoAPIClient()
    location_service = LocationService(api=api_client)
    auth_service = AuthService(api=api_client)

    # Solo se persiste user_data: ahí viven userData y el AppState
    persistence = PicklePersistence(
        filepath=settings.persistence_file,
        store_data=PersistenceInput(bot_data=False, chat_data=False, callback_data=False),
    )

    logger.info("Starting bot...")
    application = (
        Application.builder()
        .token(settings.bot_token)
        .persistence(persistence)
        .post_shutdown(close_services)
        .build()
    )

    application.bot_data["api_client"] = api_client
    application.bot_data["location_service"] = location_service
    application.bot_data["auth_service"] = auth_service

    application.add_handler(build_login_handler())
    application.add_handler(build_new_request_handler())

    application.add_handler(CommandHandler("start", common.start))
    application.add_handler(CommandHandler("logout", common.logout))
    application.add_handler(CommandHandler("solicitudes", request_handler.show_client_requests))
    application.add_handler(
        CommandHandler("trabajos", request_handler.show_professional_requests)
    )
    application.add_handler(CommandHandler("pendientes", request_handler.show_pending_count))
    application.add_handler(CommandHandler("detalle", request_handler.show_request_detail))
    application.add_handler(
        CallbackQueryHandler(
            request_handler.request_callback_handler, pattern=markup.CALLBACK_PATTERN
        )
    )

    application.add_error_handler(common.error_handler)
    application.add_handler(MessageHandler(TEXT, common.fallback_text_handler))

    logger.info("Bot is running in polling mode.")
    application.run_polling()


if __name__ == "__main__":
    main()
