"""
Tests de integración de los handlers de solicitudes.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from telegram.ext import ConversationHandler

from contacto_bot.core.decorators import PROFESSIONAL_ONLY_MESSAGE
from contacto_bot.core.exceptions import (
    ConnectivityError,
    NotFoundError,
    StaleViewError,
)
from contacto_bot.handlers import request as request_handler
from contacto_bot.models.request import (
    DeliveryMode,
    RequestStatus,
    ServiceRequest,
    ServiceRequestDraft,
)
from contacto_bot.models.state import View
from contacto_bot.models.user import USER_DATA_KEY, UserData
from contacto_bot.services.api_client import ContactoAPIClient

PROFESSIONAL = UserData(id=7, professional_id=3, name="Luis", token="tkn")
CLIENT = UserData(id=9, name="Ana", token="tkn")


def make_request(request_id: int, status: str) -> ServiceRequest:
    return ServiceRequest.model_validate(
        {"id": request_id, "estado": status, "descripcion": "Arreglo de grifería del baño"}
    )


# --- Fixtures ---


@pytest.fixture
def mock_api(mocker) -> MagicMock:
    api = mocker.Mock(spec=ContactoAPIClient)
    api.get_request = mocker.AsyncMock()
    api.list_requests = mocker.AsyncMock(return_value=[])
    api.update_status = mocker.AsyncMock(return_value={})
    api.create_request = mocker.AsyncMock()
    api.get_work_modality = mocker.AsyncMock()
    return api


@pytest.fixture
def mock_update_context(mocker, mock_api) -> tuple[MagicMock, MagicMock]:
    """Mocks de Update y Context con un profesional en sesión."""
    mock_update = mocker.MagicMock()
    mock_context = mocker.MagicMock()

    mock_update.effective_user.id = 555
    mock_update.effective_message.reply_text = mocker.AsyncMock()
    mock_update.effective_message.reply_html = mocker.AsyncMock()
    mock_update.callback_query = None

    mock_context.user_data = {USER_DATA_KEY: PROFESSIONAL}
    mock_context.bot_data = {"api_client": mock_api}
    mock_context.args = []

    return mock_update, mock_context


@pytest.fixture
def mock_query(mocker, mock_update_context) -> MagicMock:
    mock_update, _ = mock_update_context
    query = mocker.MagicMock()
    query.answer = mocker.AsyncMock()
    query.edit_message_text = mocker.AsyncMock()
    mock_update.callback_query = query
    return query


# --- Listado y detalle ---


def test_parse_list_args():
    filters = request_handler.parse_list_args(["Pendiente", "presupuesto", "baño", "roto"])
    assert filters.status is RequestStatus.PENDING
    assert filters.order == "presupuesto"
    assert filters.search == "baño roto"


@pytest.mark.asyncio
async def test_professional_list_shows_pending_count(mock_update_context, mock_api):
    """
    Test: /trabajos con 5 solicitudes, 2 pendientes, muestra el contador en 2.
    """
    # Arrange
    mock_update, mock_context = mock_update_context
    mock_api.list_requests.return_value = [
        make_request(1, "pendiente"),
        make_request(2, "aceptada"),
        make_request(3, "pendiente"),
        make_request(4, "completada"),
        make_request(5, "cancelada"),
    ]

    # Act
    await request_handler.show_professional_requests(mock_update, mock_context)

    # Assert
    mock_api.list_requests.assert_awaited_once_with(3, tipo="profesional")
    header = mock_update.effective_message.reply_html.await_args_list[0].args[0]
    assert "Pendientes: <b>2</b>" in header
    # Cabecera + una fila por solicitud
    assert mock_update.effective_message.reply_html.await_count == 6
    assert mock_context.user_data["appState"].view is View.REQUEST_LIST


@pytest.mark.asyncio
async def test_client_cannot_open_professional_list(mock_update_context, mock_api):
    mock_update, mock_context = mock_update_context
    mock_context.user_data[USER_DATA_KEY] = CLIENT

    await request_handler.show_professional_requests(mock_update, mock_context)

    mock_api.list_requests.assert_not_called()
    mock_update.effective_message.reply_text.assert_awaited_once_with(
        PROFESSIONAL_ONLY_MESSAGE
    )


@pytest.mark.asyncio
async def test_detail_command_requires_numeric_id(mock_update_context, mock_api):
    mock_update, mock_context = mock_update_context
    mock_context.args = ["abc"]

    await request_handler.show_request_detail(mock_update, mock_context)

    mock_api.get_request.assert_not_called()
    mock_update.effective_message.reply_text.assert_awaited_once_with(
        "Uso: /detalle <id de la solicitud>"
    )


# --- Cambios de estado ---


@pytest.mark.asyncio
async def test_confirm_transition_accepts_request(mock_update_context, mock_query, mock_api):
    """
    Test: confirmar "aceptar" sobre una pendiente envía el cambio y muestra el aviso.
    """
    mock_update, mock_context = mock_update_context
    mock_query.data = "confirm:1:aceptada"
    mock_api.get_request.side_effect = [
        make_request(1, "pendiente"),
        make_request(1, "aceptada"),
    ]

    await request_handler.request_callback_handler(mock_update, mock_context)

    mock_api.update_status.assert_awaited_once_with(1, 3, RequestStatus.ACCEPTED)
    mock_query.answer.assert_awaited_once_with("✅ Solicitud aceptada exitosamente")
    edited_text = mock_query.edit_message_text.await_args.kwargs["text"]
    assert "✓ Aceptada" in edited_text


@pytest.mark.asyncio
async def test_illegal_transition_shows_alert(mock_update_context, mock_query, mock_api):
    mock_update, mock_context = mock_update_context
    mock_query.data = "trans:1:aceptada"
    mock_api.get_request.return_value = make_request(1, "completada")

    await request_handler.request_callback_handler(mock_update, mock_context)

    mock_api.update_status.assert_not_called()
    mock_query.answer.assert_awaited_once_with(
        "Transición no permitida: completada → aceptada", show_alert=True
    )


@pytest.mark.asyncio
async def test_ask_transition_shows_confirmation(mock_update_context, mock_query, mock_api):
    mock_update, mock_context = mock_update_context
    mock_query.data = "trans:1:rechazada"
    mock_api.get_request.return_value = make_request(1, "pendiente")

    await request_handler.request_callback_handler(mock_update, mock_context)

    edited_text = mock_query.edit_message_text.await_args.kwargs["text"]
    assert "¿Estás seguro de rechazar esta solicitud?" in edited_text
    mock_api.update_status.assert_not_called()
    mock_query.answer.assert_awaited_once_with()


@pytest.mark.asyncio
async def test_client_cannot_change_status(mock_update_context, mock_query, mock_api):
    mock_update, mock_context = mock_update_context
    mock_context.user_data[USER_DATA_KEY] = CLIENT
    mock_query.data = "confirm:1:aceptada"

    await request_handler.request_callback_handler(mock_update, mock_context)

    mock_api.update_status.assert_not_called()
    mock_query.answer.assert_awaited_once_with(PROFESSIONAL_ONLY_MESSAGE, show_alert=True)


@pytest.mark.asyncio
async def test_failed_reread_offers_only_refresh(mock_update_context, mock_query, mock_api):
    """
    Test: si el cambio se aplicó pero no se pudo releer la solicitud, el mensaje
    ya no ofrece las acciones anteriores, solo "🔄 Actualizar".
    """
    mock_update, mock_context = mock_update_context
    mock_query.data = "confirm:1:aceptada"
    mock_api.get_request.side_effect = [make_request(1, "pendiente"), ConnectivityError()]

    await request_handler.request_callback_handler(mock_update, mock_context)

    mock_api.update_status.assert_awaited_once_with(1, 3, RequestStatus.ACCEPTED)
    kwargs = mock_query.edit_message_text.await_args.kwargs
    assert kwargs["text"].startswith("⚠️ El cambio de estado se aplicó")
    buttons = [button for row in kwargs["reply_markup"].inline_keyboard for button in row]
    assert [button.callback_data for button in buttons] == ["detail:1:profesional"]
    mock_query.answer.assert_awaited_once_with(StaleViewError.default_message, show_alert=True)


@pytest.mark.asyncio
async def test_transition_callback_without_target_is_ignored(
    mock_update_context, mock_query, mock_api
):
    mock_update, mock_context = mock_update_context
    mock_query.data = "trans:1"

    await request_handler.request_callback_handler(mock_update, mock_context)

    mock_api.get_request.assert_not_called()
    mock_query.answer.assert_awaited_once_with()


@pytest.mark.asyncio
async def test_client_cancel_from_list(mocker, mock_update_context, mock_query, mock_api):
    mock_update, mock_context = mock_update_context
    mock_context.user_data[USER_DATA_KEY] = CLIENT
    mock_query.data = "cconfirm:4"
    mock_api.cancel_request = mocker.AsyncMock()
    mock_api.get_request.return_value = make_request(4, "pendiente")
    mock_api.list_requests.return_value = [make_request(4, "cancelada")]

    await request_handler.request_callback_handler(mock_update, mock_context)

    mock_api.get_request.assert_awaited_once_with(4, 9, tipo="cliente")
    mock_api.cancel_request.assert_awaited_once_with(4, 9)
    mock_query.answer.assert_awaited_once_with("Solicitud cancelada exitosamente")


# --- Asistente de nueva solicitud ---


@pytest.mark.asyncio
async def test_new_request_start_creates_draft(mock_update_context, mock_api):
    mock_update, mock_context = mock_update_context
    mock_context.args = ["12"]

    state = await request_handler.new_request_start(mock_update, mock_context)

    assert state == request_handler.DESCRIPTION
    draft = mock_context.user_data[request_handler.DRAFT_KEY]
    assert draft.professional_id == 12
    assert mock_context.user_data[request_handler.ALLOWED_MODES_KEY] == [
        "REMOTO",
        "PRESENCIAL",
    ]
    mock_api.get_work_modality.assert_not_called()


@pytest.mark.asyncio
async def test_new_request_start_without_args(mock_update_context):
    mock_update, mock_context = mock_update_context

    state = await request_handler.new_request_start(mock_update, mock_context)

    assert state == ConversationHandler.END
    assert request_handler.DRAFT_KEY not in mock_context.user_data


@pytest.mark.asyncio
async def test_short_description_stays_on_step(mock_update_context):
    mock_update, mock_context = mock_update_context
    mock_context.user_data[request_handler.DRAFT_KEY] = ServiceRequestDraft(professional_id=12)
    mock_update.effective_message.text = "Muy corta"

    state = await request_handler.get_description(mock_update, mock_context)

    assert state == request_handler.DESCRIPTION
    mock_update.effective_message.reply_text.assert_awaited_once_with(
        "La descripción debe tener al menos 20 caracteres"
    )


@pytest.mark.asyncio
async def test_remote_modality_skips_location(mock_update_context):
    """
    Test: al elegir modalidad remota el asistente pasa directo a la fecha.
    """
    mock_update, mock_context = mock_update_context
    mock_context.user_data[request_handler.DRAFT_KEY] = ServiceRequestDraft(professional_id=12)
    mock_context.user_data[request_handler.ALLOWED_MODES_KEY] = ["REMOTO", "PRESENCIAL"]
    mock_update.effective_message.text = "💻 Remoto"

    state = await request_handler.get_modality(mock_update, mock_context)

    assert state == request_handler.SCHEDULE
    draft = mock_context.user_data[request_handler.DRAFT_KEY]
    assert draft.delivery_mode is DeliveryMode.REMOTE


@pytest.mark.asyncio
async def test_modality_not_offered_is_rejected(mock_update_context):
    mock_update, mock_context = mock_update_context
    mock_context.user_data[request_handler.DRAFT_KEY] = ServiceRequestDraft(professional_id=12)
    mock_context.user_data[request_handler.ALLOWED_MODES_KEY] = ["REMOTO"]
    mock_update.effective_message.text = "📍 Presencial"

    state = await request_handler.get_modality(mock_update, mock_context)

    assert state == request_handler.MODALITY


@pytest.mark.asyncio
async def test_confirm_request_submits_draft(mock_update_context, mock_api):
    mock_update, mock_context = mock_update_context
    mock_context.user_data[USER_DATA_KEY] = CLIENT
    mock_context.user_data[request_handler.DRAFT_KEY] = ServiceRequestDraft(
        professional_id=12,
        description="Instalación de un calentador de agua a gas",
        estimated_budget=Decimal("200"),
        delivery_mode=DeliveryMode.REMOTE,
        service_datetime=datetime.now() + timedelta(days=3),
    )
    mock_update.effective_message.text = request_handler.ACCEPT_TERMS_TEXT
    mock_api.create_request.return_value = {
        "solicitudId": 31,
        "codigoSolicitud": "SR-2025-000031",
    }

    state = await request_handler.confirm_request(mock_update, mock_context)

    assert state == ConversationHandler.END
    payload = mock_api.create_request.await_args.args[0]
    assert payload["clienteId"] == 9
    assert payload["profesionalId"] == 12
    assert request_handler.DRAFT_KEY not in mock_context.user_data
    confirmation = mock_update.effective_message.reply_html.await_args.args[0]
    assert "SR-2025-000031" in confirmation


@pytest.mark.asyncio
async def test_not_found_detail_removes_actions(mock_update_context, mock_query, mock_api):
    mock_update, mock_context = mock_update_context
    mock_query.data = "detail:99:profesional"
    mock_api.get_request.side_effect = NotFoundError()

    await request_handler.request_callback_handler(mock_update, mock_context)

    mock_query.edit_message_text.assert_awaited_once_with(
        text="⛔️ Solicitud no encontrada.", reply_markup=None, parse_mode="HTML"
    )
    mock_query.answer.assert_awaited_once_with("Solicitud no encontrada.", show_alert=True)
