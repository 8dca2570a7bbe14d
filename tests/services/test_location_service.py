"""
Tests del servicio de ubicaciones.
"""

import pytest

from contacto_bot.core.exceptions import ConnectivityError, ValidationError
from contacto_bot.models.location import Location
from contacto_bot.services.api_client import ContactoAPIClient
from contacto_bot.services.location_service import LocationService

DEPARTMENTS = [
    Location(id=15, nombre="Lima", codigo="15"),
    Location(id=4, nombre="Arequipa", codigo="04"),
]


@pytest.fixture
def mock_api(mocker):
    api = mocker.Mock(spec=ContactoAPIClient)
    api.get_departments = mocker.AsyncMock(return_value=DEPARTMENTS)
    api.get_provinces = mocker.AsyncMock(return_value=[Location(id=1501, nombre="Lima")])
    api.get_districts = mocker.AsyncMock(return_value=[Location(id=150122, nombre="Miraflores")])
    return api


@pytest.fixture
def location_service(mock_api) -> LocationService:
    return LocationService(api=mock_api, cache_ttl_seconds=3600)


@pytest.mark.asyncio
async def test_departments_are_cached(location_service, mock_api):
    first = await location_service.get_departments()
    second = await location_service.get_departments()

    assert first is second
    mock_api.get_departments.assert_awaited_once()


@pytest.mark.asyncio
async def test_provinces_are_cached_per_department(location_service, mock_api):
    await location_service.get_provinces(15)
    await location_service.get_provinces(15)
    await location_service.get_provinces(4)

    assert mock_api.get_provinces.await_count == 2


@pytest.mark.asyncio
async def test_cascade_requires_parent_id(location_service, mock_api):
    with pytest.raises(ValidationError, match="departamentoId es requerido"):
        await location_service.get_provinces(None)
    with pytest.raises(ValidationError, match="provinciaId es requerido"):
        await location_service.get_districts(0)

    mock_api.get_provinces.assert_not_called()
    mock_api.get_districts.assert_not_called()


@pytest.mark.asyncio
async def test_stale_cache_is_served_on_failure(mock_api):
    """Test: si el backend falla, se devuelve la caché vencida."""
    location_service = LocationService(api=mock_api, cache_ttl_seconds=0)
    cached = await location_service.get_departments()

    mock_api.get_departments.side_effect = ConnectivityError()
    assert await location_service.get_departments() is cached


@pytest.mark.asyncio
async def test_failure_without_cache_propagates(location_service, mock_api):
    mock_api.get_departments.side_effect = ConnectivityError()

    with pytest.raises(ConnectivityError):
        await location_service.get_departments()


def test_find_by_name_ignores_case():
    assert LocationService.find_by_name(DEPARTMENTS, " arequipa ").id == 4
    assert LocationService.find_by_name(DEPARTMENTS, "Cusco") is None
