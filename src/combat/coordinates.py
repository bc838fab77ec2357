"""
Grid coordinates

(placed in its own module as every other combat module needs to import it)

A coordinate is a row letter followed by a column digit, ex. 'C4'. The grid is always 9x9.
"""

from typing import Optional

ROWS: tuple[str, ...] = ("A", "B", "C", "D", "E", "F", "G", "H", "I")
COLUMNS: tuple[str, ...] = ("1", "2", "3", "4", "5", "6", "7", "8", "9")
GRID_DIMENSIONS = (len(ROWS), len(COLUMNS))

Coordinate = str


def to_indices(coordinate: object) -> Optional[tuple[int, int]]:
    """'A1' - 'I9' get converted to (0, 0) - (8, 8). Anything else maps to None."""
    if not isinstance(coordinate, str) or len(coordinate) != 2:
        return None
    row, column = coordinate[0], coordinate[1]
    if row not in ROWS or column not in COLUMNS:
        return None
    return ROWS.index(row), COLUMNS.index(column)


def to_coordinate(row_index: int, column_index: int) -> Optional[Coordinate]:
    if not (0 <= row_index < GRID_DIMENSIONS[0] and 0 <= column_index < GRID_DIMENSIONS[1]):
        return None
    return f"{ROWS[row_index]}{COLUMNS[column_index]}"


def is_valid(coordinate: object) -> bool:
    return to_indices(coordinate) is not None


def all_coordinates() -> list[Coordinate]:
    """Row-major: A1, A2, ..., A9, B1, ..., I9"""
    return [f"{row}{column}" for row in ROWS for column in COLUMNS]


def normalize(coordinate: str) -> str:
    """Clients may send lower case; the canonical form is upper case without surrounding whitespace."""
    return coordinate.strip().upper()
