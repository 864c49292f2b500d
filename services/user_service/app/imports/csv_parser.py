"""Parsing of bulk user CSV files."""

import csv
import io
from dataclasses import dataclass, field

from pydantic import ValidationError

from services.user_service.app.imports.artifact import RowError
from services.user_service.app.imports.errors import BulkImportError
from services.user_service.app.users.schemas import UserCreate

REQUIRED_COLUMNS = ("email", "password")
OPTIONAL_COLUMNS = ("full_name", "role")


class CsvFormatError(BulkImportError):
    """The file as a whole cannot be read as a user CSV."""


@dataclass
class ParsedRow:
    row_number: int
    user: UserCreate


@dataclass
class ParsedUserCsv:
    rows: list[ParsedRow] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        column = ".".join(str(loc) for loc in item["loc"]) or "row"
        parts.append(f"{column}: {item['msg']}")
    return "; ".join(parts)


def parse_user_csv(content: bytes) -> ParsedUserCsv:
    """Parse CSV bytes into validated user rows and per-row errors.

    Header names are matched case-insensitively. Rows where every cell is
    blank are ignored.

    Raises:
        CsvFormatError: Missing header or required columns, bad encoding, malformed CSV
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise CsvFormatError("CSV must be UTF-8 encoded.") from e

    reader = csv.DictReader(io.StringIO(text, newline=""))
    parsed = ParsedUserCsv()

    try:
        if not reader.fieldnames:
            raise CsvFormatError("CSV header row is missing.")

        columns = {name.strip().lower(): name for name in reader.fieldnames if name}
        missing = [name for name in REQUIRED_COLUMNS if name not in columns]
        if missing:
            raise CsvFormatError(f"CSV is missing required columns: {', '.join(missing)}")

        for row_number, raw_row in enumerate(reader, start=2):
            values = {
                name: (raw_row.get(columns[name]) or "").strip()
                for name in (*REQUIRED_COLUMNS, *OPTIONAL_COLUMNS)
                if name in columns
            }
            if not any(values.values()):
                continue

            # Empty optional cells fall back to model defaults
            payload = {name: value for name, value in values.items() if value or name in REQUIRED_COLUMNS}
            if "role" in payload:
                payload["role"] = payload["role"].lower()

            try:
                user = UserCreate(**payload)
            except ValidationError as e:
                parsed.errors.append(
                    RowError(
                        row_number=row_number,
                        message=_describe(e),
                        email=values.get("email") or None,
                    )
                )
                continue

            parsed.rows.append(ParsedRow(row_number=row_number, user=user))

    except csv.Error as e:
        raise CsvFormatError(f"Invalid CSV format: {e}") from e

    return parsed
