# File: app/services/photo_layout.py
"""
Cell-range layouts for photos on a per-item photo sheet.

Each photo kind owns a fixed block on the sheet (inbound: B6:E15, install:
F6:I15). Depending on how many photos there are, the block is split:

    1 photo   one range covering the whole block
    2 photos  left half, right half
    3 photos  full-width top half, then bottom-left and bottom-right
    4 photos  2x2 grid

At most MAX_PHOTOS_PER_KIND photos are placed; the rest are dropped.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple, TypeVar

from openpyxl.utils import get_column_letter, column_index_from_string

logger = logging.getLogger(__name__)

MAX_PHOTOS_PER_KIND = 4

T = TypeVar("T")


@dataclass(frozen=True)
class CellRange:
    """An inclusive rectangular range, 1-based rows and columns."""

    min_col: int
    min_row: int
    max_col: int
    max_row: int

    @classmethod
    def from_ref(cls, ref: str) -> "CellRange":
        start, end = ref.split(":")
        start_col, start_row = _split_ref(start)
        end_col, end_row = _split_ref(end)
        return cls(start_col, start_row, end_col, end_row)

    @property
    def ref(self) -> str:
        return (
            f"{get_column_letter(self.min_col)}{self.min_row}:"
            f"{get_column_letter(self.max_col)}{self.max_row}"
        )

    @property
    def anchor(self) -> str:
        return f"{get_column_letter(self.min_col)}{self.min_row}"

    def __str__(self) -> str:
        return self.ref


def _split_ref(cell_ref: str) -> Tuple[int, int]:
    letters = "".join(ch for ch in cell_ref if ch.isalpha())
    digits = "".join(ch for ch in cell_ref if ch.isdigit())
    return column_index_from_string(letters), int(digits)


@dataclass(frozen=True)
class PhotoBlock:
    """The block a photo kind occupies: first/last column letters, top/bottom rows."""

    first_col: str
    last_col: str
    top_row: int = 6
    bottom_row: int = 15

    def ranges(self, count: int) -> List[CellRange]:
        """
        Target ranges for `count` photos, in placement order. Counts above four
        use the four-photo grid; zero gives no ranges.
        """
        count = min(count, MAX_PHOTOS_PER_KIND)
        if count <= 0:
            return []

        left = column_index_from_string(self.first_col)
        right = column_index_from_string(self.last_col)
        # Two-column halves: B:C + D:E for a four-column block
        split = left + (right - left + 1) // 2
        middle = self.top_row + (self.bottom_row - self.top_row + 1) // 2
        top, bottom = self.top_row, self.bottom_row

        full = CellRange(left, top, right, bottom)
        left_half = CellRange(left, top, split - 1, bottom)
        right_half = CellRange(split, top, right, bottom)
        top_wide = CellRange(left, top, right, middle - 1)
        top_left = CellRange(left, top, split - 1, middle - 1)
        top_right = CellRange(split, top, right, middle - 1)
        bottom_left = CellRange(left, middle, split - 1, bottom)
        bottom_right = CellRange(split, middle, right, bottom)

        layouts = {
            1: [full],
            2: [left_half, right_half],
            3: [top_wide, bottom_left, bottom_right],
            4: [top_left, top_right, bottom_left, bottom_right],
        }
        return layouts[count]


INBOUND_BLOCK = PhotoBlock("B", "E")
INSTALL_BLOCK = PhotoBlock("F", "I")

PHOTO_BLOCKS: Dict[str, PhotoBlock] = {
    "inbound": INBOUND_BLOCK,
    "install": INSTALL_BLOCK,
}


def inbound_ranges(count: int) -> List[CellRange]:
    return INBOUND_BLOCK.ranges(count)


def install_ranges(count: int) -> List[CellRange]:
    return INSTALL_BLOCK.ranges(count)


def assign_ranges(kind: str, photos: Sequence[T]) -> List[Tuple[T, CellRange]]:
    """
    Pair photos with their target ranges. Photos past the fourth are dropped
    with an info log line.
    """
    block = PHOTO_BLOCKS[kind]
    if len(photos) > MAX_PHOTOS_PER_KIND:
        logger.info(
            f"{len(photos)} {kind} photos, only the first {MAX_PHOTOS_PER_KIND} are placed"
        )
    placed = list(photos[:MAX_PHOTOS_PER_KIND])
    return list(zip(placed, block.ranges(len(placed))))
