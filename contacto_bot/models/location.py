"""
Modelos de ubicación geográfica (departamento, provincia, distrito).
"""

from pydantic import BaseModel, ConfigDict, Field

from contacto_bot.models.request import DeliveryMode


class Location(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    name: str = Field(..., alias="nombre")
    code: str | None = Field(default=None, alias="codigo")


class WorkModality(BaseModel):
    """Modalidades que ofrece una especialidad."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    remote: bool = Field(default=True, alias="trabajoRemoto")
    on_site: bool = Field(default=True, alias="trabajoPresencial")

    def allowed_modes(self) -> list[DeliveryMode]:
        modes = []
        if self.remote:
            modes.append(DeliveryMode.REMOTE)
        if self.on_site:
            modes.append(DeliveryMode.ON_SITE)
        return modes
