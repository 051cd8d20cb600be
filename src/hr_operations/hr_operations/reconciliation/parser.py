from __future__ import annotations

import io
import math
from pathlib import Path
from typing import List
from zipfile import BadZipFile

import pandas as pd
import xlrd

from ..core.constants import MAX_UPLOAD_BYTES
from ..core.exceptions import EmptyFileError, FileTooLargeError, MissingHeadersError, UploadError
from .model import ImportRecord, TableData

# suffix -> pandas read_excel engine
EXCEL_ENGINES = {".xlsx": "openpyxl", ".xlsm": "openpyxl", ".xls": "xlrd"}


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def clean_headers(raw: List[object]) -> List[str]:
    """Blank headers become Column_<n>; repeats get _2, _3 ... suffixes."""
    headers = [_cell_text(h) or f"Column_{i + 1}" for i, h in enumerate(raw)]
    seen: dict[str, int] = {}
    out: List[str] = []
    for h in headers:
        count = seen.get(h, 0)
        seen[h] = count + 1
        out.append(f"{h}_{count + 1}" if count else h)
    return out


def _read_frame(content: bytes, filename: str) -> pd.DataFrame:
    suffix = Path(filename or "").suffix.lower()
    buf = io.BytesIO(content)
    try:
        if suffix in EXCEL_ENGINES:
            return pd.read_excel(
                buf,
                sheet_name=0,
                header=None,
                dtype=str,
                keep_default_na=False,
                engine=EXCEL_ENGINES[suffix],
            )
        return pd.read_csv(
            buf,
            header=None,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        raise EmptyFileError("The file is empty or contains no data")
    except (ValueError, UnicodeDecodeError, pd.errors.ParserError, BadZipFile, xlrd.XLRDError) as e:
        raise UploadError(f"Could not read {filename or 'file'}: {e}")


def read_table(content: bytes, filename: str, *, max_bytes: int = MAX_UPLOAD_BYTES) -> TableData:
    """Parse an uploaded CSV/Excel file: first row headers, rest data.

    Raises FileTooLargeError, EmptyFileError or MissingHeadersError.
    """
    if len(content) > max_bytes:
        raise FileTooLargeError(f"File exceeds {max_bytes // (1024 * 1024)} MB limit")
    if not content or not content.strip():
        raise EmptyFileError("The file is empty or contains no data")

    frame = _read_frame(content, filename)
    rows = frame.values.tolist()
    if not rows:
        raise EmptyFileError("The file is empty or contains no data")

    header_row = rows[0]
    if not any(_cell_text(h) for h in header_row):
        raise MissingHeadersError("No headers found in the first row")
    headers = clean_headers(header_row)

    records: List[ImportRecord] = []
    for index, row in enumerate(rows[1:]):
        values = {h: _cell_text(row[i]) if i < len(row) else "" for i, h in enumerate(headers)}
        if not any(values.values()):
            continue
        records.append(ImportRecord(row_number=index + 2, values=values))

    if not records:
        raise EmptyFileError("No data rows found below the header row")
    return TableData(headers=headers, records=records)
