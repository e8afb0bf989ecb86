"""
Defensive parser for BLS delimited files.

**Conceptual**: BLS flat files are "mostly" tab-separated tables. In
practice:
  - Data rows often end with a stray delimiter, so they carry one more field
    than the header declares (a "phantom" column).
  - Some headers end with a delimiter too, declaring a blank column name.
  - Some columns are empty in every row (e.g. footnote_codes in a release
    with no footnotes).
  - Identifier and code columns look numeric ("0001", "00") but are not
    numbers: leading zeros are significant.

DefensiveParser reads such a file into a pandas DataFrame, repairs what it
can, and records every repair in a DiagnosticRecord so callers can see
exactly what was changed.

**Algorithm**:
  1. Read the header, split on the delimiter, strip names. Trailing blank
     names are removed; interior blank names are named positionally;
     duplicates get ".1", ".2" suffixes.
  2. Scan the rows once to find the widest row, then read everything as text
     with positional names for fields beyond the header.
  3. original_dimensions = (rows, declared header columns). Phantom columns
     are never counted as original.
  4. Fields beyond the header (trailing only) are phantom columns, named
     V<n>, and always dropped.
  5. Fully empty columns are dropped, except the first column.
  6. The first column (and any text_columns) stay text. Other columns become
     numeric only when every value is numeric and none has a leading zero.
  7. final_dimensions = shape after steps 4-5.

Rows are never dropped and missing cells stay missing (NaN).

**Teaching note**: The phantom rule deliberately assumes extra fields are
trailing. A row with an extra field in the middle would shift its values
left of the header; detecting that needs a contract from the data producer,
not a heuristic here.
"""

import csv
import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from src.data.schemas import DiagnosticRecord, Resource
from src.utils.errors import ParseFailure

logger = logging.getLogger(__name__)

LEADING_ZERO = re.compile(r"^[+-]?0\d")
BYTE_ORDER_MARK = "\ufeff"

ResourceLike = Union[Resource, str, None]


def _quoting_for(delimiter: str) -> int:
    # BLS tab files use bare quotes inside text fields; CSV slices quote properly.
    return csv.QUOTE_NONE if delimiter == "\t" else csv.QUOTE_MINIMAL


def _dedupe(names: List[str]) -> Tuple[List[str], int]:
    seen = {}
    result = []
    renamed = 0
    for name in names:
        if name in seen:
            seen[name] += 1
            candidate = f"{name}.{seen[name]}"
            while candidate in seen:
                seen[name] += 1
                candidate = f"{name}.{seen[name]}"
            seen[candidate] = 0
            result.append(candidate)
            renamed += 1
        else:
            seen[name] = 0
            result.append(name)
    return result, renamed


def looks_numeric(values: pd.Series) -> bool:
    """
    True when every non-missing value parses as a number and none carries a
    significant leading zero ("01", "007", "-05").
    """
    present = values.dropna()
    if present.empty:
        return False
    text = present.astype(str)
    if text.str.match(LEADING_ZERO).any():
        return False
    converted = pd.to_numeric(text, errors="coerce")
    return not converted.isna().any()


class DefensiveParser:
    """
    Parses BLS delimited files and records the repairs it makes.

    **Example usage**:
        >>> parser = DefensiveParser()
        >>> table, record = parser.parse(path, "\\t", resource=Resource(url, "series"))
        >>> record.repairs
        ['removed 1 phantom column(s)']
    """

    def __init__(self, text_columns: Optional[Sequence[str]] = None):
        """
        Args:
            text_columns: Extra column names that must stay text (in addition
                          to the first column), e.g. ["industry_code"].
        """
        self.text_columns = list(text_columns or [])

    def parse(
        self,
        raw_location: Union[str, Path],
        expected_delimiter: str = "\t",
        resource: ResourceLike = None,
        encoding: str = "utf-8",
    ) -> Tuple[pd.DataFrame, DiagnosticRecord]:
        """
        Parse a local delimited file into a cleaned DataFrame.

        Args:
            raw_location: Local file (already fetched and decompressed).
            expected_delimiter: Field delimiter ("\\t" for flat files, ","
                                for CSV slices).
            resource: Resource (or identifier string) used in diagnostics and
                      error messages. Defaults to the file path.
            encoding: Text encoding of the file.

        Returns:
            (table, record): the cleaned table and its DiagnosticRecord.

        Raises:
            ParseFailure: If the file is empty or has no readable header, or
                          cannot be decoded/parsed.
        """
        path = Path(raw_location)
        if isinstance(resource, Resource):
            resource_id, name = resource.url, resource.name
        else:
            resource_id, name = (resource or str(path)), None
        record = DiagnosticRecord(resource=resource_id, name=name)
        quoting = _quoting_for(expected_delimiter)

        try:
            names, declared, width, rows = self._scan(path, expected_delimiter, quoting, encoding, record)
            if rows == 0:
                frame = pd.DataFrame({column: pd.Series(dtype="object") for column in names})
            else:
                frame = pd.read_csv(
                    path,
                    sep=expected_delimiter,
                    header=None,
                    skiprows=1,
                    names=names,
                    dtype=str,
                    keep_default_na=False,
                    na_values=[""],
                    quoting=quoting,
                    encoding=encoding,
                    skip_blank_lines=True,
                )
        except UnicodeDecodeError as e:
            raise ParseFailure(f"could not decode {resource_id} as {encoding}: {e}", resource=resource_id) from e
        except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as e:
            raise ParseFailure(f"malformed delimited file {resource_id}: {e}", resource=resource_id) from e
        except OSError as e:
            raise ParseFailure(f"empty or unreadable resource: {resource_id} ({e})", resource=resource_id) from e

        frame = self._strip_cells(frame)
        record.original_dimensions = (len(frame), declared)

        frame = self._drop_phantom_columns(frame, names[declared:], record)
        frame = self._drop_empty_columns(frame, record)
        frame = self._coerce_types(frame)

        record.final_dimensions = (len(frame), len(frame.columns))
        for repair in record.repairs:
            logger.debug("%s: %s", resource_id, repair)

        return frame.reset_index(drop=True), record

    def _scan(self, path, delimiter, quoting, encoding, record):
        """Read the header and find the widest data row."""
        with open(path, "r", encoding=encoding, newline="") as handle:
            header_line = handle.readline()
            if not header_line.strip():
                raise ParseFailure(
                    f"empty or unreadable resource: {record.resource}",
                    resource=record.resource,
                )

            if header_line.startswith(BYTE_ORDER_MARK):
                header_line = header_line[len(BYTE_ORDER_MARK):]
                record.add_repair("removed byte order mark from header")

            header = next(csv.reader([header_line.rstrip("\r\n")], delimiter=delimiter, quoting=quoting))
            header = [field.strip() for field in header]

            trailing_blank = 0
            while header and header[-1] == "":
                header.pop()
                trailing_blank += 1
            if not header:
                raise ParseFailure(
                    f"empty or unreadable resource: {record.resource} (blank header)",
                    resource=record.resource,
                )
            if trailing_blank:
                record.add_repair(f"removed {trailing_blank} blank trailing header field(s)")

            blank = [i for i, field in enumerate(header) if field == ""]
            for i in blank:
                header[i] = f"V{i + 1}"
            if blank:
                record.add_repair(f"named {len(blank)} blank header field(s) positionally")

            header, renamed = _dedupe(header)
            if renamed:
                record.add_repair(f"renamed {renamed} duplicate header field(s)")

            width = 0
            rows = 0
            for row in csv.reader(handle, delimiter=delimiter, quoting=quoting):
                if not row:
                    continue
                rows += 1
                width = max(width, len(row))

        declared = len(header)
        names = header + [f"V{i + 1}" for i in range(declared, max(width, declared))]
        return names, declared, width, rows

    def _strip_cells(self, frame: pd.DataFrame) -> pd.DataFrame:
        for column in frame.columns:
            stripped = frame[column].str.strip()
            frame[column] = stripped.mask(stripped == "", np.nan)
        return frame

    def _drop_phantom_columns(self, frame, phantom: List[str], record: DiagnosticRecord):
        if not phantom:
            return frame
        filled = int(frame[phantom].notna().sum().sum())
        frame = frame.drop(columns=phantom)
        record.add_repair(f"removed {len(phantom)} phantom column(s)")
        if filled:
            record.add_warning(
                f"phantom column(s) beyond the header held {filled} non-empty value(s); dropped"
            )
        return frame

    def _drop_empty_columns(self, frame, record: DiagnosticRecord):
        if frame.empty or len(frame.columns) <= 1:
            return frame
        empty = [column for column in frame.columns[1:] if frame[column].isna().all()]
        if empty:
            frame = frame.drop(columns=empty)
            record.add_repair(f"removed {len(empty)} empty column(s): {', '.join(empty)}")
        return frame

    def _coerce_types(self, frame: pd.DataFrame) -> pd.DataFrame:
        protected = set(self.text_columns)
        if len(frame.columns):
            protected.add(frame.columns[0])
        for column in frame.columns:
            if column in protected:
                continue
            if looks_numeric(frame[column]):
                frame[column] = pd.to_numeric(frame[column])
        return frame


def parse_delimited(
    raw_location: Union[str, Path],
    expected_delimiter: str = "\t",
    resource: ResourceLike = None,
    text_columns: Optional[Sequence[str]] = None,
    encoding: str = "utf-8",
) -> Tuple[pd.DataFrame, DiagnosticRecord]:
    """Convenience wrapper around DefensiveParser(text_columns).parse(...)."""
    return DefensiveParser(text_columns).parse(raw_location, expected_delimiter, resource, encoding)
