"""
Reads an uploaded client file into validated import rows.

The whole file is validated before anything is handed to the reconciler,
so a bad line means nothing at all is written.
"""

import logging
from typing import List

from .exceptions import StructuralImportError
from .headers import looks_like_header_row, map_header_positions
from .parsing import clean_value, detect_delimiter, sanitise_email, split_lines, split_row
from .types import ImportRow, TrackKind
from .validation import validate_row

logger = logging.getLogger(__name__)


def parse_roster_csv(content: str, kind: TrackKind) -> List[ImportRow]:
    """
    Parse delimited text for the given track kind.

    Raises:
        StructuralImportError: fewer than two lines or unrecognised headers
        RowValidationError: the first row failing validation

    Line numbers in error messages are physical 1-based file lines, so blank
    lines count. They match what a consultant sees in a text editor rather
    than the position among non-blank lines.
    """
    lines = split_lines(content or '')
    if len(lines) < 2:
        raise StructuralImportError("CSV dosyasında başlık satırı ve en az bir kayıt bulunmalıdır.")

    _, header_line = lines[0]
    delimiter = detect_delimiter(header_line)
    positions = map_header_positions(split_row(header_line, delimiter), kind, header_line)

    rows = []
    for line_number, line in lines[1:]:
        cells = split_row(line, delimiter)
        if all(not cell.strip() for cell in cells):
            continue

        values = {
            field_name: clean_value(cells[index]) if index < len(cells) else ''
            for field_name, index in positions.items()
        }
        values['email'] = sanitise_email(values.get('email', ''))

        if not values['name'] and not values['email']:
            continue
        if looks_like_header_row(values['name'], values['email'], kind):
            logger.debug(f"Skipping repeated header on line {line_number}")
            continue

        rows.append(validate_row(values, kind, line_number))

    logger.info(f"Parsed {len(rows)} {kind.value} rows from {len(lines) - 1} data lines")
    return rows
