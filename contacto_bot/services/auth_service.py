"""
Servicio de autenticación con bloqueo por intentos fallidos.

Solo cuentan los intentos con contraseña incorrecta; un usuario inexistente
no suma intentos.
"""

import logging
import time
from datetime import datetime, timedelta, timezone

from contacto_bot.core.config import settings
from contacto_bot.core.exceptions import (
    ApiError,
    AuthorizationError,
    ContactoError,
    LoginBlockedError,
    NotFoundError,
)
from contacto_bot.models.user import UserData
from contacto_bot.services.api_client import ContactoAPIClient

logger = logging.getLogger(__name__)


class LoginAttemptTracker:
    """
    Contador de intentos fallidos de un usuario de Telegram.

    Atributos:
        attempts (int): Intentos fallidos consecutivos.
        blocked_until (float): Marca de tiempo (epoch) en que termina el bloqueo.
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        block_seconds: int | None = None,
        clock=time.time,
    ):
        self.max_attempts = max_attempts or settings.login_max_attempts
        self.block_seconds = block_seconds or settings.login_block_minutes * 60
        self._clock = clock
        self.attempts = 0
        self.blocked_until = 0.0

    def is_blocked(self) -> bool:
        if self.blocked_until and self._clock() >= self.blocked_until:
            # El bloqueo venció: se reinicia el contador
            self.reset()
        return self.blocked_until > 0

    def remaining_minutes(self) -> int:
        seconds = max(0.0, self.blocked_until - self._clock())
        return max(1, int(-(-seconds // 60)))

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    def register_failure(self) -> None:
        self.attempts += 1
        if self.attempts >= self.max_attempts:
            self.blocked_until = self._clock() + self.block_seconds

    def reset(self) -> None:
        self.attempts = 0
        self.blocked_until = 0.0


class LoginFailed(ContactoError):
    """Login rechazado; `user_message` ya incluye los intentos restantes."""

    def __init__(self, message: str, counted: bool, blocked: bool = False):
        self.counted = counted
        self.blocked = blocked
        super().__init__(message)


class AuthService:
    def __init__(self, api: ContactoAPIClient):
        self.api = api

    async def login(
        self, email: str, password: str, tracker: LoginAttemptTracker
    ) -> UserData:
        """
        Autentica contra /api/login y devuelve el perfil del usuario.

        Raises:
            LoginBlockedError: si el tracker está bloqueado.
            LoginFailed: si el backend rechaza las credenciales.
        """
        if tracker.is_blocked():
            raise LoginBlockedError(tracker.remaining_minutes())

        try:
            data = await self.api.login(email.strip(), password)
        except ApiError as e:
            flags = e.payload.get("data") or {}
            has_message = e.payload.get("error") or e.payload.get("message")
            if isinstance(e, NotFoundError) or flags.get("userNotFound"):
                logger.info(f"Login attempt for unknown user {email}.")
                raise LoginFailed(
                    f"❌ {e.user_message if has_message else 'Usuario no encontrado.'} "
                    "¿Deseas crear una cuenta?", counted=False
                ) from e
            if isinstance(e, AuthorizationError) or flags.get("passwordIncorrect"):
                tracker.register_failure()
                logger.warning(
                    f"Wrong password for {email}; attempts={tracker.attempts}."
                )
                if tracker.is_blocked():
                    raise LoginFailed(
                        "🚫 Demasiados intentos fallidos. Cuenta bloqueada por "
                        f"{tracker.block_seconds // 60} minutos.",
                        counted=True,
                        blocked=True,
                    ) from e
                raise LoginFailed(
                    f"❌ {e.user_message if has_message else 'Credenciales inválidas'}. "
                    f"Te quedan {tracker.remaining_attempts} intentos.",
                    counted=True,
                ) from e
            raise

        if not data.get("usuario"):
            raise ApiError("Respuesta de login incompleta.")
        tracker.reset()
        user = UserData.model_validate(data["usuario"])
        expires_in_ms = data.get("expiresIn")
        user = user.model_copy(
            update={
                "token": data.get("token"),
                "expires_at": (
                    datetime.now(timezone.utc) + timedelta(milliseconds=expires_in_ms)
                    if expires_in_ms
                    else None
                ),
            }
        )
        logger.info(f"User {user.id} logged in.")
        return user
