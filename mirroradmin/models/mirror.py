"""
Mirror record model and its Redis field mapping.
"""
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class Mirror(BaseModel):
    """A remote host offering a copy of the repository."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    id: str

    # Endpoints
    http_url: str = ""
    rsync_url: str = ""
    ftp_url: str = ""

    # Sponsor and admin
    sponsor_name: str = ""
    sponsor_url: str = ""
    sponsor_logo_url: str = ""
    admin_name: str = ""
    admin_email: str = ""
    custom_data: str = ""

    # Scope flags
    continent_only: bool = False
    country_only: bool = False
    as_only: bool = False

    score: int = 0

    # Geographic information
    latitude: float = 0.0
    longitude: float = 0.0
    continent_code: str = ""
    country_codes: str = ""
    asnum: int = 0

    # State
    enabled: bool = False
    up: bool = False
    state_since: int = 0

    @property
    def primary_country_code(self) -> Optional[str]:
        codes = self.country_codes.split()
        return codes[0] if codes else None

    def __repr__(self) -> str:
        return f"<Mirror(id={self.id}, enabled={self.enabled}, up={self.up})>"


# Attribute name -> Redis hash field, in storage order.
FIELD_MAP: Tuple[Tuple[str, str], ...] = (
    ("id", "ID"),
    ("http_url", "http"),
    ("rsync_url", "rsync"),
    ("ftp_url", "ftp"),
    ("sponsor_name", "sponsorName"),
    ("sponsor_url", "sponsorURL"),
    ("sponsor_logo_url", "sponsorLogo"),
    ("admin_name", "adminName"),
    ("admin_email", "adminEmail"),
    ("custom_data", "customData"),
    ("continent_only", "continentOnly"),
    ("country_only", "countryOnly"),
    ("as_only", "asOnly"),
    ("score", "score"),
    ("latitude", "latitude"),
    ("longitude", "longitude"),
    ("continent_code", "continentCode"),
    ("country_codes", "countryCodes"),
    ("asnum", "asnum"),
    ("enabled", "enabled"),
    ("up", "up"),
    ("state_since", "stateSince"),
)

# Liveness is owned by the health checker, never by admin edits.
STATE_FIELDS = frozenset({"up", "state_since"})

EDITABLE_FIELDS: Tuple[Tuple[str, str], ...] = tuple(
    (attr, field) for attr, field in FIELD_MAP
    if attr not in STATE_FIELDS and attr != "id"
)

_BOOL_ATTRS = frozenset({"continent_only", "country_only", "as_only", "enabled", "up"})
_INT_ATTRS = frozenset({"score", "asnum", "state_since"})
_FLOAT_ATTRS = frozenset({"latitude", "longitude"})


def _encode(attr: str, value) -> str:
    if attr in _BOOL_ATTRS:
        return "1" if value else "0"
    if attr in _FLOAT_ATTRS:
        return f"{value:f}"
    return str(value)


def _decode(attr: str, raw: str):
    if attr in _BOOL_ATTRS:
        return raw.strip().lower() in ("1", "true")
    if attr in _INT_ATTRS:
        try:
            return int(raw)
        except ValueError:
            return 0
    if attr in _FLOAT_ATTRS:
        try:
            return float(raw)
        except ValueError:
            return 0.0
    return raw


def mirror_to_fields(mirror: Mirror, include_state: bool = True) -> Dict[str, str]:
    """Encode a mirror as a Redis field map.

    With ``include_state=False`` the ``up``/``stateSince`` pair is left out so
    the write cannot clobber what the health checker recorded.
    """
    return {
        field: _encode(attr, getattr(mirror, attr))
        for attr, field in FIELD_MAP
        if include_state or attr not in STATE_FIELDS
    }


def mirror_from_fields(fields: Dict[str, str], identifier: Optional[str] = None) -> Mirror:
    """Decode a Redis field map. Missing fields take their defaults."""
    values = {}
    for attr, field in FIELD_MAP:
        if field in fields:
            values[attr] = _decode(attr, fields[field])
    if identifier is not None:
        values["id"] = identifier
    return Mirror(**values)
