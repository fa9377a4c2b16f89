"""
Mirror geolocation.

Resolves the mirror hostname and looks the address up in the MaxMind GeoIP2
city and ASN databases.
"""
import asyncio
import socket
from pathlib import Path
from typing import List, Optional, Protocol

import geoip2.database
import geoip2.errors
import maxminddb
from pydantic import BaseModel
import structlog

from mirroradmin.core.config import Settings
from mirroradmin.core.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


class GeoInfo(BaseModel):
    """Location derived from a mirror address."""
    latitude: float = 0.0
    longitude: float = 0.0
    continent_code: str = ""
    country_code: str = ""
    asnum: int = 0
    addresses: List[str] = []

    @property
    def located(self) -> bool:
        return bool(self.country_code or self.continent_code)


class Geolocator(Protocol):
    async def locate(self, host: str) -> GeoInfo:
        ...


async def resolve_host(host: str) -> List[str]:
    """Return the distinct addresses of ``host``."""
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    except socket.gaierror as e:
        logger.warning("Hostname lookup failed", host=host, error=str(e))
        return []

    addresses = []
    for _, _, _, _, sockaddr in infos:
        if sockaddr[0] not in addresses:
            addresses.append(sockaddr[0])
    return addresses


class GeoIPLocator:
    """Geolocation backed by local GeoIP2 databases."""

    def __init__(self, city_database: Path, asn_database: Path):
        try:
            self.city = geoip2.database.Reader(str(city_database))
            self.asn = geoip2.database.Reader(str(asn_database))
        except (OSError, maxminddb.InvalidDatabaseError) as e:
            raise ConfigurationError(f"Can't load GeoIP: {e}") from e

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeoIPLocator":
        return cls(
            settings.GEOIP_DATABASE_PATH / settings.GEOIP_CITY_DATABASE,
            settings.GEOIP_DATABASE_PATH / settings.GEOIP_ASN_DATABASE,
        )

    def lookup(self, address: str) -> GeoInfo:
        info = GeoInfo()
        try:
            city = self.city.city(address)
            info.latitude = city.location.latitude or 0.0
            info.longitude = city.location.longitude or 0.0
            info.continent_code = city.continent.code or ""
            info.country_code = city.country.iso_code or ""
        except (geoip2.errors.AddressNotFoundError, ValueError):
            logger.debug("Address not in city database", address=address)
        try:
            info.asnum = self.asn.asn(address).autonomous_system_number or 0
        except (geoip2.errors.AddressNotFoundError, ValueError):
            logger.debug("Address not in ASN database", address=address)
        return info

    async def locate(self, host: str) -> GeoInfo:
        addresses = await resolve_host(host)
        if not addresses:
            return GeoInfo()
        info = self.lookup(addresses[0])
        info.addresses = addresses
        return info
