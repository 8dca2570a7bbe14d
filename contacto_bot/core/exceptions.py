"""
Jerarquía de errores del cliente de ContactoProfesionales.

Cada error lleva un `user_message` listo para mostrarse al usuario; los
handlers capturan `ContactoError` y responden con ese texto.
"""


class ContactoError(Exception):
    """Error base de la aplicación."""

    default_message = "Ocurrió un error inesperado. Inténtalo nuevamente."

    def __init__(self, user_message: str | None = None):
        self.user_message = user_message or self.default_message
        super().__init__(self.user_message)


class ValidationError(ContactoError):
    """Un campo requerido falta o es inválido. Se detecta antes de llamar al backend."""

    default_message = "Los datos ingresados no son válidos."


class IllegalTransitionError(ValidationError):
    """El estado destino no es una transición legal desde el estado actual."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Transición no permitida: {current} → {target}")


class TransitionInProgressError(ContactoError):
    default_message = "Ya hay un cambio de estado en curso para esta solicitud."


class SessionExpiredError(ContactoError):
    default_message = "Sesión no válida. Por favor inicia sesión nuevamente con /login."


class LoginBlockedError(ContactoError):
    """Demasiados intentos fallidos de login."""

    def __init__(self, remaining_minutes: int):
        self.remaining_minutes = remaining_minutes
        super().__init__(
            f"⏱️ Cuenta bloqueada. Inténtalo de nuevo en {remaining_minutes} minutos."
        )


class ApiError(ContactoError):
    """El backend respondió con un error."""

    default_message = "Error del servidor. Por favor intenta nuevamente."

    def __init__(
        self,
        user_message: str | None = None,
        status_code: int | None = None,
        payload: dict | None = None,
    ):
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(user_message)


class AuthorizationError(ApiError):
    default_message = "No tienes autorización para ver esta solicitud."


class NotFoundError(ApiError):
    default_message = "Solicitud no encontrada."


class TransitionRejectedError(ApiError):
    """El backend rechazó el cambio de estado (p. ej. el estado avanzó en paralelo)."""

    default_message = "No se pudo actualizar el estado de la solicitud."


class ConnectivityError(ApiError):
    default_message = "❌ Error de conexión con el servidor. Intenta nuevamente."


class StaleViewError(ContactoError):
    """El backend aplicó el cambio, pero la relectura posterior falló."""

    default_message = (
        "El cambio de estado se aplicó, pero no se pudo actualizar la vista. "
        "Pulsa 🔄 Actualizar."
    )

    def __init__(self, request_id: int, target: str, cause: Exception | None = None):
        self.request_id = request_id
        self.target = target
        self.cause = cause
        super().__init__()
