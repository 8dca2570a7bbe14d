"""
Módulo de configuración del logging.

Define un formato único para todos los loggers de la aplicación y evita que
los tokens de sesión del backend lleguen a los registros.
"""

import logging
import re
import sys

LOG_FORMAT = "%(asctime)s - [%(levelname)s] - %(name)s - (%(filename)s).%(funcName)s(%(lineno)d) - %(message)s"

_TOKEN_PATTERN = re.compile(r"(Bearer\s+|token=|\"token\":\s*\")[A-Za-z0-9._\-]+")


class TokenRedactingFilter(logging.Filter):
    """Reemplaza tokens Bearer y campos `token` por asteriscos."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _TOKEN_PATTERN.sub(r"\1***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(level: int | str = logging.INFO) -> None:
    """
    Configura el logging básico con salida a stdout.

    Args:
        level: Nivel de logging, como número o nombre ("INFO", "DEBUG", etc.).
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    stdout_handler.addFilter(TokenRedactingFilter())

    logging.basicConfig(level=level, handlers=[stdout_handler], force=True)

    # httpx registra cada petición en INFO, tanto la del bot como la del backend
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
