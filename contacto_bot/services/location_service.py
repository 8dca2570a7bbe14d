"""
Servicio de ubicaciones para los selectores en cascada
departamento -> provincia -> distrito.

Cachea cada nivel para no consultar el backend en cada paso del asistente.
"""

import logging
import time

from contacto_bot.core.config import settings
from contacto_bot.core.exceptions import ApiError, ValidationError
from contacto_bot.models.location import Location
from contacto_bot.services.api_client import ContactoAPIClient

logger = logging.getLogger(__name__)


class LocationService:
    """
    Servicio de lectura de departamentos, provincias y distritos con caché TTL.
    """

    def __init__(self, api: ContactoAPIClient, cache_ttl_seconds: int | None = None):
        self.api = api
        self._cache_ttl = (
            cache_ttl_seconds
            if cache_ttl_seconds is not None
            else settings.location_cache_ttl_seconds
        )
        self._cache: dict[tuple[str, int | None], tuple[float, list[Location]]] = {}

    async def _cached(self, key: tuple[str, int | None], loader) -> list[Location]:
        current_time = time.time()
        cached = self._cache.get(key)
        if cached is not None and (current_time - cached[0]) < self._cache_ttl:
            logger.debug(f"Returning {key} from cache.")
            return cached[1]

        logger.info(f"Cache is expired or empty. Fetching {key} from API...")
        try:
            locations = await loader()
        except ApiError as e:
            logger.error(f"Failed to fetch {key}: {e}", exc_info=True)
            if cached is not None:
                logger.warning(f"Returning stale {key} cache due to fetch failure.")
                return cached[1]
            raise
        self._cache[key] = (current_time, locations)
        return locations

    async def get_departments(self) -> list[Location]:
        return await self._cached(("departamentos", None), self.api.get_departments)

    async def get_provinces(self, department_id: int | None) -> list[Location]:
        if not department_id:
            raise ValidationError("departamentoId es requerido")
        return await self._cached(
            ("provincias", department_id),
            lambda: self.api.get_provinces(department_id),
        )

    async def get_districts(self, province_id: int | None) -> list[Location]:
        if not province_id:
            raise ValidationError("provinciaId es requerido")
        return await self._cached(
            ("distritos", province_id),
            lambda: self.api.get_districts(province_id),
        )

    @staticmethod
    def find_by_name(locations: list[Location], name: str) -> Location | None:
        wanted = (name or "").strip().lower()
        for location in locations:
            if location.name.lower() == wanted:
                return location
        return None

    def clear(self) -> None:
        self._cache.clear()
