"""
Módulo de configuración del proyecto.

Carga los ajustes desde variables de entorno con Pydantic Settings.
Todos los módulos leen la configuración desde la instancia `settings`.
"""

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Ajustes principales de la aplicación.

    Atributos:
        bot_token (str): Token secreto del Bot API de Telegram.
        api_base_url (str): URL base del backend de ContactoProfesionales.
        api_timeout_seconds (float): Tiempo máximo de espera por petición HTTP.
        admin_ids (list[int]): IDs de Telegram que reciben los reportes de error.
        display_timezone (str): Zona horaria para mostrar fechas.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # --- Telegram Bot Settings ---
    bot_token: str = Field(default="", description="Telegram Bot API Token")
    admin_ids_str: str = Field(
        default="",
        alias="ADMIN_IDS",
        description="Comma-separated Telegram IDs notified about errors",
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    persistence_file: str = Field(
        default="contacto_bot.pickle",
        description="File used by PicklePersistence to keep userData",
    )

    @computed_field
    @property
    def admin_ids(self) -> list[int]:
        """Convierte admin_ids_str en una lista de enteros."""
        if not self.admin_ids_str:
            return []
        return [int(item.strip()) for item in self.admin_ids_str.split(",")]

    # --- Backend API Settings ---
    api_base_url: str = Field(
        default="http://localhost:8080/ContactoProfesionalesWeb/api",
        description="Base URL of the ContactoProfesionales REST API",
    )
    api_timeout_seconds: float = Field(
        default=30.0, description="Timeout for every backend request"
    )
    read_retry_attempts: int = Field(
        default=3, description="Attempts for idempotent GET requests"
    )

    # --- Business Logic Settings ---
    display_timezone: str = Field(
        default="America/Lima",
        description="Timezone for displaying dates and times to users",
    )
    max_photos: int = Field(default=5, description="Photos attached per request")
    max_photo_size_bytes: int = Field(
        default=5 * 1024 * 1024, description="Size cap per attached photo"
    )
    description_preview_length: int = Field(
        default=60, description="Truncation length of descriptions in lists"
    )
    location_cache_ttl_seconds: int = Field(
        default=3600, description="TTL of the department/province/district cache"
    )

    # --- Login Lockout Settings ---
    login_max_attempts: int = Field(default=5)
    login_block_minutes: int = Field(default=15)


# Instancia única de ajustes usada en toda la aplicación
settings = Settings()
