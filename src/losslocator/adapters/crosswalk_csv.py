"""Read ZIP-to-county crosswalk files (HUD USPS exports or simple three-column CSVs)."""

from __future__ import annotations

import csv
from logging import getLogger
from typing import TYPE_CHECKING

from losslocator.domain.errors import ValidationError
from losslocator.domain.ports.geocoding import CrosswalkRow

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

log = getLogger(__name__)

ZIP_COLUMNS = ("zip_code", "zip", "zcta")
COUNTY_COLUMNS = ("county_fips", "county", "fips", "geoid")
STATE_COLUMNS = ("state_code", "state", "usps_zip_pref_state", "stusab")


def _pick(row: dict[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = row.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _column_present(fieldnames: list[str], names: tuple[str, ...]) -> bool:
    return any(name in fieldnames for name in names)


def read_crosswalk_csv(path: Path) -> Iterator[CrosswalkRow]:
    """Yield crosswalk rows; malformed lines are logged and skipped.

    Header names are matched case-insensitively. ZIPs and FIPS codes that lost
    their leading zeros in a spreadsheet are padded back.
    """

    with path.open(newline="", encoding="utf-8-sig") as handle:
        reader = csv.DictReader(handle)
        fieldnames = [name.strip().lower() for name in reader.fieldnames or ()]
        if not _column_present(fieldnames, ZIP_COLUMNS) or not _column_present(
            fieldnames, COUNTY_COLUMNS
        ):
            raise ValidationError(
                f"{path}: expected a ZIP column ({', '.join(ZIP_COLUMNS)}) "
                f"and a county column ({', '.join(COUNTY_COLUMNS)})",
                source=str(path),
            )
        for line_number, raw in enumerate(reader, start=2):
            row = {
                key.strip().lower(): value
                for key, value in raw.items()
                if key is not None and value is not None
            }
            zip_code = _pick(row, ZIP_COLUMNS)
            county = _pick(row, COUNTY_COLUMNS)
            if not zip_code or not county or not zip_code.isdigit() or not county.isdigit():
                log.warning("Skipping crosswalk line %d: %r", line_number, raw)
                continue
            state = _pick(row, STATE_COLUMNS)
            yield CrosswalkRow(
                zip_code=zip_code.zfill(5),
                county_fips=county.zfill(5),
                state_code=state.upper() if state and len(state) == 2 else None,
            )
