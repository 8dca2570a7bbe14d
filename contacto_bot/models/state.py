"""
Estado de la interfaz por chat.

AppState es inmutable: cada cambio produce una copia nueva que se guarda
mediante `handlers.common.save_app_state`, el único punto de escritura.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from contacto_bot.models.request import RequestStatus

APP_STATE_KEY = "appState"

Role = Literal["cliente", "profesional"]
ListOrder = Literal["reciente", "antiguo", "presupuesto"]


class View(str, Enum):
    HOME = "home"
    REQUEST_LIST = "request_list"
    REQUEST_DETAIL = "request_detail"


class RequestListFilters(BaseModel):
    """Filtros del listado de solicitudes."""

    model_config = ConfigDict(frozen=True)

    status: RequestStatus | None = None
    search: str = ""
    order: ListOrder | None = None


class AppState(BaseModel):
    model_config = ConfigDict(frozen=True)

    view: View = View.HOME
    role: Role = "cliente"
    selected_request_id: int | None = None
    filters: RequestListFilters = Field(default_factory=RequestListFilters)

    def show_list(self, role: Role, filters: RequestListFilters | None = None) -> "AppState":
        return self.model_copy(
            update={
                "view": View.REQUEST_LIST,
                "role": role,
                "selected_request_id": None,
                "filters": filters if filters is not None else self.filters,
            }
        )

    def show_detail(self, request_id: int, role: Role) -> "AppState":
        return self.model_copy(
            update={
                "view": View.REQUEST_DETAIL,
                "role": role,
                "selected_request_id": request_id,
            }
        )
