"""
Export file normalizer.

Turns arbitrary tabular exports from device-extraction tools (CSV, XLSX, XLS)
into canonical NormalizedEvidence records. Column roles are inferred from the
header row through an ordered alias table, and each row's evidence type is
inferred from which mapped columns carry a value.
"""

import csv
import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional, Union

import openpyxl
import xlrd
from dateutil import parser as date_parser
from openpyxl.utils.exceptions import InvalidFileException

from evidence_triage.models import EvidenceType, NormalizedEvidence
from evidence_triage.utils.exceptions import IngestionError, UnsupportedFormatError

logger = logging.getLogger(__name__)

ColumnMapping = dict[str, str]
ProgressCallback = Callable[[int], None]

PROGRESS_INTERVAL = 100

# Ordered (field, aliases) rules. Earlier fields and earlier aliases win.
COLUMN_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("timestamp", ("timestamp", "date", "time", "datetime", "created", "sent_at",
                   "received_at", "call_time", "msg_time")),
    ("sender", ("sender", "from", "from_number", "caller", "origin", "source_id", "from_id")),
    ("receiver", ("receiver", "to", "to_number", "recipient", "destination", "target_id", "to_id")),
    ("content", ("content", "body", "message", "text", "msg", "message_body", "msg_content")),
    ("source", ("source", "app", "app_name", "application", "platform", "service")),
    ("duration", ("duration", "call_duration", "length", "call_length")),
    ("type", ("type", "msg_type", "message_type", "call_type", "record_type")),
    ("latitude", ("latitude", "lat", "location_lat")),
    ("longitude", ("longitude", "lng", "lon", "location_lng")),
    ("contact_name", ("name", "contact_name", "display_name", "full_name")),
    ("phone_numbers", ("phone", "phone_number", "mobile", "telephone")),
    ("emails", ("email", "email_address", "mail")),
    ("organization", ("organization", "company", "org", "workplace")),
)

# Forensic timestamp shapes tried when the generic parser gives up
DATE_SHAPES = (
    re.compile(r"(\d{4})-(\d{2})-(\d{2})\s+(\d{2}):(\d{2}):(\d{2})"),  # YYYY-MM-DD HH:mm:ss
    re.compile(r"(\d{2})/(\d{2})/(\d{4})\s+(\d{2}):(\d{2}):(\d{2})"),  # MM/DD/YYYY HH:mm:ss
    re.compile(r"(\d{2})-(\d{2})-(\d{4})\s+(\d{2}):(\d{2}):(\d{2})"),  # DD-MM-YYYY HH:mm:ss
)


@dataclass
class ParseResult:
    """Records parsed from one export file."""
    records: list[NormalizedEvidence] = field(default_factory=list)
    total_rows: int = 0
    mappings: dict[str, ColumnMapping] = field(default_factory=dict)
    sheets: list[str] = field(default_factory=list)


# ----------------------------------------------------------------------
# Column and type detection
# ----------------------------------------------------------------------

def detect_column_mappings(headers: Iterable[Any]) -> ColumnMapping:
    """
    Map canonical fields to source headers.

    For each field in rule order, each alias is tried in order: first as an
    exact match against the lower-cased, stripped headers, then as a substring
    in either direction. The first alias that hits any header claims that
    header for the field. A header may serve more than one field.

    Args:
        headers: Header row as read from the file

    Returns:
        Mapping of canonical field name to original header text
    """
    originals = [h for h in headers if h is not None]
    lowered = [str(h).lower().strip() for h in originals]
    mappings: ColumnMapping = {}

    for field_name, aliases in COLUMN_RULES:
        for alias in aliases:
            index = _find_header(lowered, alias)
            if index is not None:
                mappings[field_name] = originals[index]
                break

    return mappings


def _find_header(lowered: list[str], alias: str) -> Optional[int]:
    for i, header in enumerate(lowered):
        if header and header == alias:
            return i
    for i, header in enumerate(lowered):
        if header and (alias in header or header in alias):
            return i
    return None


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def _cell(row: dict, mappings: ColumnMapping, field_name: str) -> Any:
    header = mappings.get(field_name)
    if header is None:
        return None
    return row.get(header)


def _has(row: dict, mappings: ColumnMapping, field_name: str) -> bool:
    return _present(_cell(row, mappings, field_name))


TYPE_RULES: tuple[tuple[EvidenceType, Callable[[dict, ColumnMapping], bool]], ...] = (
    (EvidenceType.CALL, lambda row, m: _has(row, m, "duration")),
    (EvidenceType.LOCATION, lambda row, m: _has(row, m, "latitude") and _has(row, m, "longitude")),
    (
        EvidenceType.CONTACT,
        lambda row, m: ("phone_numbers" in m or "emails" in m)
        and "contact_name" in m
        and not _has(row, m, "content"),
    ),
    (EvidenceType.MESSAGE, lambda row, m: _has(row, m, "content")),
)


def detect_evidence_type(row: dict, mappings: ColumnMapping) -> EvidenceType:
    """Classify a row by the first matching rule in TYPE_RULES."""
    for evidence_type, matches in TYPE_RULES:
        if matches(row, mappings):
            return evidence_type
    return EvidenceType.OTHER


# ----------------------------------------------------------------------
# Value coercion
# ----------------------------------------------------------------------

def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_date(value: Any) -> Optional[datetime]:
    """
    Best-effort timestamp parsing.

    Datetimes pass through and dates become midnight. Anything else is handed
    to the generic parser; if that fails, the known forensic export shapes are
    searched for and the matched span is parsed instead. Ambiguous day/month
    orders resolve however the generic parser resolves them (month first).

    Returns:
        Naive UTC datetime, or None if nothing could be parsed
    """
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time())
    if not _present(value):
        return None

    text = str(value).strip()
    try:
        return _to_naive_utc(date_parser.parse(text))
    except (ValueError, OverflowError):
        pass

    for shape in DATE_SHAPES:
        match = shape.search(text)
        if match:
            try:
                return _to_naive_utc(date_parser.parse(match.group(0)))
            except (ValueError, OverflowError):
                continue

    return None


def _text(value: Any) -> Optional[str]:
    if not _present(value):
        return None
    if isinstance(value, float) and value.is_integer():
        # Spreadsheets hand phone numbers back as floats
        return str(int(value))
    return str(value).strip()


def _to_int(value: Any) -> int:
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return 0


def _to_float(value: Any) -> Optional[float]:
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def transform_to_evidence(row: dict, mappings: ColumnMapping, case_id: str) -> NormalizedEvidence:
    """
    Build one canonical record from a raw row.

    Only the fields relevant to the detected type are populated. Unparseable
    values become None rather than rejecting the row, and the raw row is kept
    unmodified.
    """
    evidence_type = detect_evidence_type(row, mappings)

    evidence = NormalizedEvidence(
        case_id=case_id,
        type=evidence_type,
        source=_text(_cell(row, mappings, "source")) or "Unknown",
        timestamp=parse_date(_cell(row, mappings, "timestamp")),
        sender=_text(_cell(row, mappings, "sender")),
        receiver=_text(_cell(row, mappings, "receiver")),
        content=_text(_cell(row, mappings, "content")),
        raw_data=row,
    )

    if evidence_type == EvidenceType.CALL:
        evidence.duration = _to_int(_cell(row, mappings, "duration"))

    elif evidence_type == EvidenceType.LOCATION:
        evidence.latitude = _to_float(_cell(row, mappings, "latitude"))
        evidence.longitude = _to_float(_cell(row, mappings, "longitude"))

    elif evidence_type == EvidenceType.CONTACT:
        evidence.contact_name = _text(_cell(row, mappings, "contact_name"))
        phone = _text(_cell(row, mappings, "phone_numbers"))
        if phone:
            evidence.phone_numbers = [phone]
        email = _text(_cell(row, mappings, "emails"))
        if email:
            evidence.emails = [email]
        evidence.organization = _text(_cell(row, mappings, "organization"))

    return evidence


def _transform_rows(
    rows: Iterable[dict],
    mappings: ColumnMapping,
    case_id: str,
    on_progress: Optional[ProgressCallback],
    offset: int = 0,
) -> Iterator[NormalizedEvidence]:
    count = offset
    for row in rows:
        count += 1
        yield transform_to_evidence(row, mappings, case_id)
        if on_progress and count % PROGRESS_INTERVAL == 0:
            on_progress(count)


# ----------------------------------------------------------------------
# File readers
# ----------------------------------------------------------------------

def _open_csv(file_path: Union[str, Path]):
    # Undecodable bytes become U+FFFD so one bad row never rejects the file
    return open(file_path, "r", encoding="utf-8-sig", errors="replace", newline="")


def iter_csv_records(
    file_path: Union[str, Path],
    case_id: str,
    on_progress: Optional[ProgressCallback] = None,
) -> Iterator[NormalizedEvidence]:
    """
    Stream records from a delimited export one row at a time.

    Column mappings are detected from the header row before the first record
    is produced. ``on_progress`` receives the running row count every
    PROGRESS_INTERVAL rows.
    """
    with _open_csv(file_path) as f:
        reader = csv.DictReader(f, restkey="_extra")
        mappings = detect_column_mappings(reader.fieldnames or [])
        logger.info(f"Detected column mappings for {Path(file_path).name}: {mappings}")
        yield from _transform_rows(reader, mappings, case_id, on_progress)


def parse_csv(
    file_path: Union[str, Path],
    case_id: str,
    on_progress: Optional[ProgressCallback] = None,
) -> ParseResult:
    """Parse a whole delimited export into memory."""
    with _open_csv(file_path) as f:
        reader = csv.DictReader(f, restkey="_extra")
        mappings = detect_column_mappings(reader.fieldnames or [])
        logger.info(f"Detected column mappings for {Path(file_path).name}: {mappings}")
        records = list(_transform_rows(reader, mappings, case_id, on_progress))

    return ParseResult(
        records=records,
        total_rows=len(records),
        mappings={Path(file_path).name: mappings},
    )


def _sheet_header(values: Iterable[Any]) -> list[str]:
    return [
        f"col_{i}" if not _present(value) else str(value)
        for i, value in enumerate(values)
    ]


def _rows_to_dicts(header: list[str], rows: Iterable[Iterable[Any]]) -> Iterator[dict]:
    for values in rows:
        values = list(values)
        if not any(_present(v) for v in values):
            continue
        values += [None] * (len(header) - len(values))
        yield dict(zip(header, values))


def _read_xlsx_sheets(file_path: Path) -> Iterator[tuple[str, list[list[Any]]]]:
    workbook = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
    try:
        for sheet in workbook.worksheets:
            yield sheet.title, [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _read_xls_sheets(file_path: Path) -> Iterator[tuple[str, list[list[Any]]]]:
    book = xlrd.open_workbook(str(file_path))
    for sheet in book.sheets():
        rows = []
        for r in range(sheet.nrows):
            row = []
            for c in range(sheet.ncols):
                cell = sheet.cell(r, c)
                if cell.ctype == xlrd.XL_CELL_DATE:
                    row.append(xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
                elif cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                    row.append(None)
                else:
                    row.append(cell.value)
            rows.append(row)
        yield sheet.name, rows


def parse_excel(
    file_path: Union[str, Path],
    case_id: str,
    on_progress: Optional[ProgressCallback] = None,
) -> ParseResult:
    """
    Parse every sheet of a spreadsheet export.

    Column detection runs separately for each sheet. Sheets without at least
    a header and one data row are skipped but still listed in ``sheets``.
    """
    file_path = Path(file_path)
    if file_path.suffix.lower() == ".xls":
        sheets = _read_xls_sheets(file_path)
    else:
        sheets = _read_xlsx_sheets(file_path)

    result = ParseResult()
    for sheet_name, rows in sheets:
        result.sheets.append(sheet_name)
        if len(rows) < 2:
            logger.debug(f"Skipping sheet '{sheet_name}': no data rows")
            continue

        header = _sheet_header(rows[0])
        mappings = detect_column_mappings(header)
        result.mappings[sheet_name] = mappings
        logger.info(f"Processing sheet '{sheet_name}' with {len(rows) - 1} rows: {mappings}")

        sheet_records = list(_transform_rows(
            _rows_to_dicts(header, rows[1:]),
            mappings,
            case_id,
            on_progress,
            offset=result.total_rows,
        ))
        result.records.extend(sheet_records)
        result.total_rows += len(sheet_records)

    return result


def parse_file(
    file_path: Union[str, Path],
    case_id: str,
    on_progress: Optional[ProgressCallback] = None,
) -> ParseResult:
    """
    Parse an export file, dispatching on its extension.

    Raises:
        UnsupportedFormatError: If the extension is not .csv, .xlsx or .xls;
            raised before the file is opened
        IngestionError: If the file cannot be read or decoded
    """
    file_path = Path(file_path)
    ext = file_path.suffix.lower()

    if ext not in UnsupportedFormatError.SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(str(file_path), ext)

    try:
        if ext == ".csv":
            return parse_csv(file_path, case_id, on_progress)
        return parse_excel(file_path, case_id, on_progress)
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise IngestionError(str(file_path), "Could not read export file", cause=e) from e
    except (zipfile.BadZipFile, InvalidFileException, xlrd.XLRDError) as e:
        raise IngestionError(str(file_path), "Corrupt or unreadable spreadsheet", cause=e) from e
