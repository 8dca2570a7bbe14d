"""
Tests del decorador @require_session.
"""

from datetime import datetime, timedelta, timezone

import pytest

from contacto_bot.core.decorators import (
    PROFESSIONAL_ONLY_MESSAGE,
    load_session,
    require_session,
)
from contacto_bot.core.exceptions import SessionExpiredError
from contacto_bot.models.user import USER_DATA_KEY, UserData

# --- Fixtures ---


@pytest.fixture
def mock_update_context(mocker):
    """Mocks de Update y Context para un mensaje de texto."""
    mock_update = mocker.MagicMock()
    mock_context = mocker.MagicMock()

    mock_update.effective_message.reply_text = mocker.AsyncMock()
    mock_update.callback_query = None
    mock_update.effective_user.id = 555

    mock_context.user_data = {}

    return mock_update, mock_context


# --- Tests ---


@pytest.mark.asyncio
async def test_require_session_success(mock_update_context, mocker):
    """
    Test: con userData guardado como dict, el handler se ejecuta y recibe el modelo.
    """
    # Arrange
    mock_update, mock_context = mock_update_context
    mock_context.user_data[USER_DATA_KEY] = {"id": 7, "nombre": "Ana"}
    dummy_handler = mocker.AsyncMock()

    # Act
    decorated_handler = require_session()(dummy_handler)
    await decorated_handler(mock_update, mock_context)

    # Assert
    dummy_handler.assert_awaited_once()
    assert isinstance(mock_context.user_data[USER_DATA_KEY], UserData)
    assert mock_context.user_data[USER_DATA_KEY].id == 7


@pytest.mark.asyncio
async def test_require_session_without_user_data(mock_update_context, mocker):
    mock_update, mock_context = mock_update_context
    dummy_handler = mocker.AsyncMock()

    await require_session()(dummy_handler)(mock_update, mock_context)

    dummy_handler.assert_not_awaited()
    mock_update.effective_message.reply_text.assert_awaited_once_with(
        SessionExpiredError.default_message
    )


@pytest.mark.asyncio
async def test_require_session_expired_token(mock_update_context, mocker):
    mock_update, mock_context = mock_update_context
    mock_context.user_data[USER_DATA_KEY] = UserData(
        id=7, expires_at=datetime.now(timezone.utc) - timedelta(minutes=1)
    )
    dummy_handler = mocker.AsyncMock()

    await require_session()(dummy_handler)(mock_update, mock_context)

    dummy_handler.assert_not_awaited()
    assert USER_DATA_KEY not in mock_context.user_data


@pytest.mark.asyncio
async def test_require_professional_denies_clients(mock_update_context, mocker):
    """
    Test: un cliente sin profesionalId no puede abrir vistas de profesional.
    """
    mock_update, mock_context = mock_update_context
    mock_context.user_data[USER_DATA_KEY] = UserData(id=7)
    dummy_handler = mocker.AsyncMock()

    await require_session(professional=True)(dummy_handler)(mock_update, mock_context)

    dummy_handler.assert_not_awaited()
    mock_update.effective_message.reply_text.assert_awaited_once_with(
        PROFESSIONAL_ONLY_MESSAGE
    )


@pytest.mark.asyncio
async def test_denied_callback_is_answered_with_alert(mock_update_context, mocker):
    mock_update, mock_context = mock_update_context
    mock_update.callback_query = mocker.MagicMock()
    mock_update.callback_query.answer = mocker.AsyncMock()
    dummy_handler = mocker.AsyncMock()

    await require_session()(dummy_handler)(mock_update, mock_context)

    mock_update.callback_query.answer.assert_awaited_once_with(
        SessionExpiredError.default_message, show_alert=True
    )
    mock_update.effective_message.reply_text.assert_not_awaited()


def test_load_session_discards_invalid_data(mocker):
    context = mocker.MagicMock()
    context.user_data = {USER_DATA_KEY: {"nombre": "sin id"}}

    assert load_session(context) is None
    assert USER_DATA_KEY not in context.user_data
