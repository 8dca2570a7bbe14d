"""
Modelos de datos del usuario autenticado.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

USER_DATA_KEY = "userData"


class UserData(BaseModel):
    """
    Instantánea del perfil del usuario guardada tras el login.

    Atributos:
        id (int): ID del usuario activo, requerido para cualquier acción.
        professional_id (int | None): ID de profesional cuando el usuario tiene ese rol.
        name (str): Nombre a mostrar.
        token (str | None): Token devuelto por /api/login.
        expires_at (datetime | None): Momento en que expira el token.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int = Field(..., description="Active user id")
    professional_id: int | None = Field(default=None, alias="profesionalId")
    name: str = Field(default="Usuario", alias="nombre")
    full_name: str | None = Field(default=None, alias="nombreCompleto")
    email: str | None = None
    token: str | None = None
    expires_at: datetime | None = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.name

    @property
    def is_professional(self) -> bool:
        return self.professional_id is not None

    @property
    def acting_professional_id(self) -> int:
        """ID con el que se consulta la API como profesional."""
        return self.professional_id or self.id

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at
