"""
Tests del renderizado de detalle y listado.
"""

from datetime import datetime, timezone
from decimal import Decimal

from contacto_bot.models.request import RequestStatus, ServiceRequest
from contacto_bot.models.state import RequestListFilters
from contacto_bot.services.renderer import (
    EMPTY_LIST_TEXT,
    FINAL_STATE_TEXT,
    format_datetime,
    format_money,
    render_confirmation,
    render_request_detail,
    render_request_list,
    truncate,
)
from contacto_bot.services.status_policy import actions_for


def make_request(request_id: int, status: str, **extra) -> ServiceRequest:
    payload = {
        "id": request_id,
        "estado": status,
        "descripcion": "Reparación de tubería en la cocina",
        "fechaSolicitud": "2025-03-10T09:15:00",
        **extra,
    }
    return ServiceRequest.model_validate(payload)


def test_pending_detail_shows_accept_and_reject():
    """Test: una solicitud pendiente muestra exactamente dos acciones."""
    view = render_request_detail(make_request(1, "pendiente"))

    assert [button.target for button in view.actions] == [
        RequestStatus.ACCEPTED,
        RequestStatus.REJECTED,
    ]
    assert view.actions[0].text == "✓ Aceptar Solicitud"
    assert all(button.enabled for button in view.actions)
    assert view.final_panel is None


def test_completed_detail_shows_final_panel_without_actions():
    view = render_request_detail(make_request(2, "completada"))

    assert view.actions == ()
    assert view.final_panel == FINAL_STATE_TEXT
    assert view.is_final
    assert view.badge.text == "✔ Completada"


def test_unknown_status_renders_distinct_panel():
    view = render_request_detail(make_request(3, "EN_REVISION"))

    assert view.actions == ()
    assert view.final_panel is None
    assert view.unknown_panel is not None
    assert "EN_REVISION" in view.badge.text


def test_busy_detail_disables_buttons():
    view = render_request_detail(make_request(4, "aceptada"), busy=True)

    assert len(view.actions) == 2
    assert not any(button.enabled for button in view.actions)
    assert {button.text for button in view.actions} == {"⏳ Procesando..."}


def test_location_only_for_on_site_requests():
    remote = render_request_detail(
        make_request(5, "pendiente", tipoPrestacion="remoto", direccion="Av. Sol 1")
    )
    on_site = render_request_detail(
        make_request(
            6,
            "pendiente",
            tipoPrestacion="PRESENCIAL",
            direccion="Av. Sol 1",
            distritoNombre="Surco",
        )
    )

    assert remote.location == ()
    assert ("Distrito", "Surco") in on_site.location
    assert ("Dirección", "Av. Sol 1") in on_site.location


def test_detail_code_falls_back_to_computed_value():
    view = render_request_detail(make_request(15, "pendiente"))
    assert view.code == "SR-2025-000015"


def test_confirmation_for_destructive_action():
    reject = actions_for(RequestStatus.PENDING)[1]
    view = render_confirmation(9, reject)
    assert view.request_id == 9
    assert view.target is RequestStatus.REJECTED
    assert view.confirm_css_class == "btn-danger"


def test_list_counts_pending_requests():
    """Test: con 5 solicitudes y 2 pendientes, el contador muestra 2."""
    requests = [
        make_request(1, "pendiente"),
        make_request(2, "aceptada"),
        make_request(3, "pendiente"),
        make_request(4, "completada"),
        make_request(5, "rechazada"),
    ]

    view = render_request_list(requests, "profesional")

    assert view.pending_count == 2
    assert view.stats.total == 5
    assert view.stats.completed == 1
    assert len(view.rows) == 5


def test_list_filters_rows_but_not_stats():
    requests = [
        make_request(1, "pendiente", presupuestoEstimado=100, distritoNombre="Surco"),
        make_request(2, "pendiente", presupuestoEstimado=300, descripcion="Pintar sala"),
        make_request(3, "completada", presupuestoEstimado=50),
    ]

    view = render_request_list(
        requests,
        "profesional",
        RequestListFilters(status=RequestStatus.PENDING, order="presupuesto"),
    )

    assert [row.request_id for row in view.rows] == [2, 1]
    assert view.stats.total == 3
    assert view.stats.budget_total == "S/ 450.00"


def test_list_search_matches_description_or_district():
    requests = [
        make_request(1, "pendiente", distritoNombre="Surco"),
        make_request(2, "pendiente", descripcion="Instalar luminarias en SURCO"),
        make_request(3, "pendiente", distritoNombre="Lince"),
    ]
    view = render_request_list(requests, "cliente", RequestListFilters(search="surco"))
    assert [row.request_id for row in view.rows] == [1, 2]


def test_empty_list_message():
    view = render_request_list([], "cliente")
    assert view.rows == ()
    assert view.empty_text == EMPTY_LIST_TEXT


def test_client_can_cancel_only_pending_rows():
    requests = [make_request(1, "pendiente"), make_request(2, "aceptada")]

    client_rows = render_request_list(requests, "cliente").rows
    professional_rows = render_request_list(requests, "profesional").rows

    assert [row.can_cancel for row in client_rows] == [True, False]
    assert not any(row.can_cancel for row in professional_rows)


def test_row_defaults_for_missing_fields():
    row = render_request_list([make_request(1, "pendiente", descripcion="")], "cliente").rows[0]
    assert row.description_preview == "Sin descripción"
    assert row.budget == "S/ 0.00"
    assert row.district == "N/A"


def test_truncate():
    assert truncate("corto") == "corto"
    text = truncate("x" * 80)
    assert len(text) == 60
    assert text.endswith("…")


def test_format_money():
    assert format_money(None) == "S/ 0.00"
    assert format_money(Decimal("150.5")) == "S/ 150.50"
    assert format_money(20) == "S/ 20.00"


def test_format_datetime():
    assert format_datetime(None) == "-"
    assert format_datetime(datetime(2025, 3, 10, 9, 15)) == "10/03/2025 09:15"
    # America/Lima es UTC-5
    aware = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)
    assert format_datetime(aware) == "10/03/2025 10:00"
