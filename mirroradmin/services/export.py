"""
Mirror list export.
"""
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple

from mirroradmin.core.exceptions import UsageError
from mirroradmin.models.mirror import Mirror

EXPORT_FORMATS = ("mirmon",)

# Country placeholder for mirrors without a country code
UNKNOWN_COUNTRY = "--"


@dataclass
class ExportOptions:
    rsync: bool = True
    http: bool = True
    ftp: bool = True
    include_disabled: bool = True


class ExportRow(NamedTuple):
    country: str
    url: str
    admin_email: str

    def __str__(self) -> str:
        return f"{self.country} {self.url} {self.admin_email}"


def export_rows(mirrors: Iterable[Mirror], options: ExportOptions, fmt: str = "mirmon") -> List[ExportRow]:
    """Project mirrors into mirmon rows, one per selected endpoint.

    Endpoints of a mirror are listed in preference order: rsync, http, ftp.
    """
    if fmt not in EXPORT_FORMATS:
        raise UsageError("Unsupported format")

    rows = []
    for mirror in mirrors:
        if not options.include_disabled and not mirror.enabled:
            continue

        urls = []
        if options.rsync and mirror.rsync_url:
            urls.append(mirror.rsync_url)
        if options.http and mirror.http_url:
            urls.append(mirror.http_url)
        if options.ftp and mirror.ftp_url:
            urls.append(mirror.ftp_url)

        country = mirror.primary_country_code or UNKNOWN_COUNTRY
        rows.extend(ExportRow(country, url, mirror.admin_email) for url in urls)
    return rows
