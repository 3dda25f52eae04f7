"""
Spreadsheet import for watch inventory.

Parses CSV/XLSX uploads, maps spreadsheet headers onto watch fields,
coerces each cell to the field's type and flags rows whose reference number
already exists in the user's inventory.

Issues come in two severities: ``error`` rows are never imported, while a
``warning`` only drops the offending cell (or marks the row as a duplicate).
"""
import csv
import io
import logging
import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from openpyxl import load_workbook
from pydantic import BaseModel
from sqlalchemy.orm import Session

from watchtracker.db.models.user import User
from watchtracker.db.models.watch import Watch, WatchHistory, WATCH_SETS, NUMERIC_FIELDS

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_ROWS = 1000
ALLOWED_EXTENSIONS = (".csv", ".xlsx", ".xlsm")
MAX_TEXT_LENGTH = 255
MIN_YEAR = 1900

IGNORE = "ignore"
REQUIRED_FIELDS = ["brand", "model", "reference_number"]
DATE_FIELDS = ["in_date", "date_sold"]

# An exact pattern match wins; otherwise the longest pattern contained in the
# header, earlier fields breaking ties
FIELD_PATTERNS: List[Tuple[str, List[str]]] = [
    ("brand", ["brand", "make", "manufacturer"]),
    ("model", ["model", "modelname", "name"]),
    ("reference_number", ["reference", "ref", "referencenumber", "partnumber", "modelref"]),
    ("serial_number", ["serial", "serialnumber", "sn", "serialno"]),
    ("in_date", ["indate", "datein", "receiveddate", "acquireddate", "purchasedate"]),
    ("watch_set", ["watchset", "set", "condition", "completeness"]),
    ("platform_purchased", ["platformpurchased", "platform", "source", "purchaseplatform"]),
    ("purchase_price", ["purchaseprice", "price", "cost", "buyprice", "paid"]),
    ("liquidation_price", ["liquidationprice", "liquidation", "wholesaleprice"]),
    ("accessories", ["accessories", "extras", "included", "parts"]),
    ("accessories_cost", ["accessoriescost", "extrascost", "addoncost"]),
    ("date_sold", ["datesold", "soldon", "solddate", "saledate"]),
    ("platform_sold", ["platformsold", "soldplatform", "soldvia", "outlet"]),
    ("price_sold", ["pricesold", "soldprice", "saleprice", "soldfor"]),
    ("fees", ["fees", "commission", "charges", "costs"]),
    ("shipping", ["shipping", "shippingcost", "delivery", "freight"]),
    ("taxes", ["taxes", "tax", "vat", "duty"]),
    ("notes", ["notes", "comments", "remarks", "description"]),
]

WATCH_FIELDS = [field for field, _ in FIELD_PATTERNS]

WATCH_SET_ALIASES = {
    "complete": "Full Set",
    "complete set": "Full Set",
    "full set": "Full Set",
    "box papers": "Full Set",
    "box & papers": "Full Set",
    "box and papers": "Full Set",
    "watch only": "Watch Only",
    "head only": "Watch Only",
    "no box papers": "Watch Only",
    "watch & box": "Watch & Box",
    "watch and box": "Watch & Box",
    "watch & papers": "Watch & Papers",
    "watch and papers": "Watch & Papers",
}

CURRENCY_RE = re.compile(r"[$€£¥₹₽]")
NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")
UNSAFE_TEXT_RE = re.compile(r"[<>'\"]")
HEADER_NORMALIZE_RE = re.compile(r"[^a-z0-9]")

ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
SLASH_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
DOT_DATE_RE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
TEXT_DATE_FORMATS = ["%Y/%m/%d", "%b %d, %Y", "%B %d, %Y", "%d %b %Y", "%d %B %Y", "%b %d %Y", "%B %d %Y"]


class ImportFileError(ValueError):
    """The upload itself is unusable (type, size, encoding or row count)."""


class ColumnMapping(BaseModel):
    csvColumn: str
    watchField: str
    confidence: float


class ImportIssue(BaseModel):
    row: int
    field: str
    message: str
    value: str = ""
    severity: str  # "error" | "warning"


class DuplicateEntry(BaseModel):
    row: int
    referenceNumber: str
    existingId: int


class ParsedSheet(BaseModel):
    file_name: str
    headers: List[str]
    rows: List[List[Any]]


class ImportRow(BaseModel):
    row: int
    values: Dict[str, Any]
    duplicate_of: Optional[int] = None


class ImportResult(BaseModel):
    valid_rows: List[ImportRow] = []
    errors: List[ImportIssue] = []
    duplicates: List[DuplicateEntry] = []

    @property
    def duplicate_map(self) -> Dict[str, int]:
        return {dup.referenceNumber: dup.existingId for dup in self.duplicates}

    def summary(self, total_rows: int) -> dict:
        return {
            "totalRows": total_rows,
            "validRows": len(self.valid_rows),
            "errorCount": sum(1 for issue in self.errors if issue.severity == "error"),
            "warningCount": sum(1 for issue in self.errors if issue.severity == "warning"),
            "duplicateCount": len(self.duplicates),
        }


# ---------------------------------------------------------------------------
# File parsing
# ---------------------------------------------------------------------------

def _is_blank_row(row: List[Any]) -> bool:
    return all(cell is None or str(cell).strip() == "" for cell in row)


def _parse_csv(content: bytes) -> Tuple[List[str], List[List[Any]]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = content.decode("latin-1")

    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=",;\t")
    except csv.Error:
        dialect = csv.excel

    reader = csv.reader(io.StringIO(text), dialect)
    all_rows = [row for row in reader if not _is_blank_row(row)]
    if not all_rows:
        return [], []
    return [h.strip() for h in all_rows[0]], all_rows[1:]


def _parse_xlsx(content: bytes) -> Tuple[List[str], List[List[Any]]]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ImportFileError(f"Could not read Excel file: {e}")

    try:
        sheet = workbook.worksheets[0]
        all_rows = [list(row) for row in sheet.iter_rows(values_only=True) if not _is_blank_row(row)]
    finally:
        workbook.close()

    if not all_rows:
        return [], []
    headers = ["" if h is None else str(h).strip() for h in all_rows[0]]
    return headers, all_rows[1:]


def parse_upload(file_name: str, content: bytes) -> ParsedSheet:
    """
    Read an uploaded spreadsheet into headers plus data rows.

    Raises:
        ImportFileError: wrong extension, too large, empty, or more than MAX_ROWS rows
    """
    name = (file_name or "").lower()
    if not name.endswith(ALLOWED_EXTENSIONS):
        if name.endswith(".xls"):
            raise ImportFileError("Legacy .xls files are not supported. Please save the file as .xlsx or .csv")
        raise ImportFileError("Invalid file type. Please upload a CSV or Excel (.xlsx) file")

    if len(content) > MAX_FILE_SIZE:
        raise ImportFileError("File too large. Maximum size is 10MB")
    if not content:
        raise ImportFileError("File is empty")

    if name.endswith(".csv"):
        headers, rows = _parse_csv(content)
    else:
        headers, rows = _parse_xlsx(content)

    if not headers:
        raise ImportFileError("File is empty")
    if not rows:
        raise ImportFileError("File contains no data rows")
    if len(rows) > MAX_ROWS:
        raise ImportFileError(f"File contains too many rows. Maximum is {MAX_ROWS}")

    logger.debug(f"Parsed upload {file_name}: {len(headers)} columns, {len(rows)} rows")
    return ParsedSheet(file_name=file_name, headers=headers, rows=rows)


# ---------------------------------------------------------------------------
# Column mapping
# ---------------------------------------------------------------------------

def normalize_header(header: str) -> str:
    return HEADER_NORMALIZE_RE.sub("", (header or "").strip().lower())


def auto_map_column(header: str) -> ColumnMapping:
    normalized = normalize_header(header)
    if not normalized:
        return ColumnMapping(csvColumn=header, watchField=IGNORE, confidence=0)

    for field, patterns in FIELD_PATTERNS:
        if normalized in patterns:
            return ColumnMapping(csvColumn=header, watchField=field, confidence=0.95)

    best_field, best_length = None, 0
    for field, patterns in FIELD_PATTERNS:
        for pattern in patterns:
            if pattern in normalized and len(pattern) > best_length:
                best_field, best_length = field, len(pattern)
    if best_field:
        return ColumnMapping(csvColumn=header, watchField=best_field, confidence=0.8)
    return ColumnMapping(csvColumn=header, watchField=IGNORE, confidence=0)


def auto_map_columns(headers: List[str]) -> List[ColumnMapping]:
    return [auto_map_column(header) for header in headers]


def apply_mapping_overrides(mappings: List[ColumnMapping], overrides: Dict[str, str]) -> List[ColumnMapping]:
    """
    Replace auto-detected targets with user-chosen ones, keyed by header text.

    Raises:
        ImportFileError: an override names an unknown column or field
    """
    by_header = {mapping.csvColumn: mapping for mapping in mappings}
    for header, field in overrides.items():
        if header not in by_header:
            raise ImportFileError(f'Unknown column in mapping: "{header}"')
        if field != IGNORE and field not in WATCH_FIELDS:
            raise ImportFileError(f'Unknown watch field in mapping: "{field}"')
        by_header[header].watchField = field
        by_header[header].confidence = 1.0
    return mappings


# ---------------------------------------------------------------------------
# Cell coercion
# ---------------------------------------------------------------------------

def _build_date(year: int, month: int, day: int) -> Optional[date]:
    if year < MIN_YEAR:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a spreadsheet date.

    Tries ISO (YYYY-MM-DD), then US (MM/DD/YYYY) with a DD/MM/YYYY fallback
    when the US reading is impossible, then DD.MM.YYYY, then month-name forms.
    Years before 1900 are rejected.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date() if value.year >= MIN_YEAR else None
    if isinstance(value, date):
        return value if value.year >= MIN_YEAR else None

    text = str(value).strip()
    if not text:
        return None

    match = ISO_DATE_RE.match(text)
    if match:
        return _build_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = SLASH_DATE_RE.match(text)
    if match:
        first, second, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
        return _build_date(year, first, second) or _build_date(year, second, first)

    match = DOT_DATE_RE.match(text)
    if match:
        return _build_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))

    for fmt in TEXT_DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        return parsed if parsed.year >= MIN_YEAR else None

    return None


def parse_numeric(value: Any) -> Optional[float]:
    """Parse a money-like cell: currency symbols, thousands separators, spaces and parentheses are ignored."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None

    cleaned = CURRENCY_RE.sub("", str(value).strip())
    cleaned = cleaned.replace(",", "")
    cleaned = re.sub(r"\s+", "", cleaned)
    cleaned = cleaned.replace("(", "").replace(")", "")

    if not NUMBER_RE.match(cleaned):
        return None
    number = float(cleaned)
    return number if math.isfinite(number) else None


def normalize_watch_set(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text in WATCH_SETS:
        return text
    return WATCH_SET_ALIASES.get(text.lower())


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


# ---------------------------------------------------------------------------
# Row processing
# ---------------------------------------------------------------------------

def load_existing_references(db: Session, user_id: int) -> Dict[str, int]:
    """Lower-cased reference number -> watch id for the user's current inventory."""
    rows = db.query(Watch.id, Watch.reference_number).filter(Watch.user_id == user_id).all()
    return {ref.lower(): watch_id for watch_id, ref in rows if ref}


def _coerce_cell(field: str, raw: Any, row_number: int, issues: List[ImportIssue]) -> Optional[Any]:
    text = _cell_text(raw)

    if field in NUMERIC_FIELDS:
        number = parse_numeric(raw)
        if number is None:
            issues.append(ImportIssue(
                row=row_number, field=field, value=text, severity="warning",
                message=f'Invalid number format: "{text}"',
            ))
            return None
        if number < 0:
            issues.append(ImportIssue(
                row=row_number, field=field, value=text, severity="warning",
                message=f"{field} must be a valid positive number",
            ))
            return None
        return number

    if field in DATE_FIELDS:
        parsed = parse_date(raw)
        if parsed is None:
            issues.append(ImportIssue(
                row=row_number, field=field, value=text, severity="warning",
                message=f'Invalid date format: "{text}". Expected YYYY-MM-DD or MM/DD/YYYY',
            ))
        return parsed

    if field == "watch_set":
        watch_set = normalize_watch_set(raw)
        if watch_set is None:
            issues.append(ImportIssue(
                row=row_number, field=field, value=text, severity="warning",
                message=f'Invalid watch set: "{text}". Valid values: {", ".join(WATCH_SETS)}',
            ))
        return watch_set

    sanitized = UNSAFE_TEXT_RE.sub("", text)
    if len(sanitized) > MAX_TEXT_LENGTH:
        issues.append(ImportIssue(
            row=row_number, field=field, value=text, severity="warning",
            message=f'Value too long (max {MAX_TEXT_LENGTH} characters): "{sanitized[:50]}..."',
        ))
        sanitized = sanitized[:MAX_TEXT_LENGTH]
    return sanitized or None


def process_rows(
    sheet: ParsedSheet,
    mappings: List[ColumnMapping],
    existing_refs: Dict[str, int],
) -> ImportResult:
    """
    Apply ``mappings`` to every data row.

    Row numbers in issues are spreadsheet row numbers: the header is row 1, so
    the first data row is row 2.
    """
    result = ImportResult()

    for index, row in enumerate(sheet.rows):
        row_number = index + 2
        values: Dict[str, Any] = {}
        issues: List[ImportIssue] = []

        for col_index, mapping in enumerate(mappings):
            if mapping.watchField == IGNORE:
                continue
            raw = row[col_index] if col_index < len(row) else None

            if _cell_text(raw) == "":
                if mapping.watchField in REQUIRED_FIELDS:
                    issues.append(ImportIssue(
                        row=row_number, field=mapping.watchField, severity="error",
                        message=f"Required field '{mapping.watchField}' is empty",
                    ))
                continue

            value = _coerce_cell(mapping.watchField, raw, row_number, issues)
            if value is not None:
                values[mapping.watchField] = value

        missing = [field for field in REQUIRED_FIELDS if not values.get(field)]
        if missing:
            issues.append(ImportIssue(
                row=row_number, field="required", severity="error",
                message=f"Missing required fields: {', '.join(missing)}",
            ))

        duplicate_of = None
        reference = values.get("reference_number")
        if reference and reference.lower() in existing_refs:
            duplicate_of = existing_refs[reference.lower()]
            result.duplicates.append(DuplicateEntry(
                row=row_number, referenceNumber=reference, existingId=duplicate_of,
            ))
            issues.append(ImportIssue(
                row=row_number, field="reference_number", value=reference, severity="warning",
                message=f'Reference number "{reference}" already exists (ID: {duplicate_of})',
            ))

        result.errors.extend(issues)

        if not any(issue.severity == "error" for issue in issues):
            result.valid_rows.append(ImportRow(row=row_number, values=values, duplicate_of=duplicate_of))

    return result


def build_preview(
    db: Session,
    user: User,
    sheet: ParsedSheet,
    overrides: Optional[Dict[str, str]] = None,
) -> Tuple[List[ColumnMapping], ImportResult]:
    mappings = auto_map_columns(sheet.headers)
    if overrides:
        mappings = apply_mapping_overrides(mappings, overrides)
    existing_refs = load_existing_references(db, user.id)
    return mappings, process_rows(sheet, mappings, existing_refs)


def commit_import(db: Session, user: User, result: ImportResult, skip_duplicates: bool = True) -> dict:
    """
    Insert every valid row in a single transaction.

    Each created watch gets an ``imported`` history entry. The caller owns the
    session; on failure the transaction is rolled back and the error re-raised.
    """
    created: List[Watch] = []
    skipped = 0

    try:
        for row in result.valid_rows:
            if skip_duplicates and row.duplicate_of is not None:
                skipped += 1
                continue

            watch = Watch(user_id=user.id, **row.values)
            db.add(watch)
            db.flush()
            db.add(WatchHistory(
                watch_id=watch.id,
                user_id=user.id,
                action="imported",
                new_value=f"Imported from spreadsheet row {row.row}",
            ))
            created.append(watch)

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Watch import committed: user_id={user.id}, created={len(created)}, skipped_duplicates={skipped}")
    return {
        "importedCount": len(created),
        "skippedDuplicates": skipped,
        "watchIds": [watch.id for watch in created],
    }
