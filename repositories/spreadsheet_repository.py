from pathlib import Path
from typing import Dict, List, Union
import re

import pandas as pd

from models.errors import SpreadsheetError
from models.pipeline_item import RowItem, SheetInfo

PREVIEW_ROWS = 5
_LABEL_RE = re.compile(r"^([A-Z]+):")
_LETTERS_RE = re.compile(r"^[A-Z]+$")


def index_to_letter(index: int) -> str:
    """0 → A, 25 → Z, 26 → AA."""
    letter = ""
    temp = index
    while temp >= 0:
        letter = chr(temp % 26 + 65) + letter
        temp = temp // 26 - 1
    return letter


def letter_to_index(letter: str) -> int:
    """A → 0, Z → 25, AA → 26."""
    index = 0
    for ch in letter:
        index = index * 26 + (ord(ch) - 64)
    return index - 1


class SpreadsheetRepository:
    """
    Grid access to uploaded workbooks. Row 0 is the header row;
    every cell is read as text ("" for blanks).
    """

    @staticmethod
    def _grid(frame: pd.DataFrame) -> List[List[str]]:
        frame = frame.fillna("")
        return [[str(cell).strip() for cell in row]
                for row in frame.itertuples(index=False, name=None)]

    def read_workbook(self, path: Union[str, Path]) -> Dict[str, List[List[str]]]:
        path = Path(path).resolve()
        if not path.is_file():
            raise SpreadsheetError(f"File not found: {path}")
        sheets = pd.read_excel(path, sheet_name=None, header=None, dtype=str)
        return {name: self._grid(frame) for name, frame in sheets.items()}

    def read_sheet(self, path: Union[str, Path], sheet_name: str) -> List[List[str]]:
        workbook = self.read_workbook(path)
        if sheet_name not in workbook:
            raise SpreadsheetError(f'Sheet "{sheet_name}" not found')
        grid = workbook[sheet_name]
        if not grid:
            raise SpreadsheetError("Sheet is empty")
        return grid

    @staticmethod
    def column_index(grid: List[List[str]], column: str) -> int:
        """
        Accepts "A: Name" labels, bare letters, or (legacy) header names.
        Returns -1 when nothing matches.
        """
        match = _LABEL_RE.match(column)
        if match:
            return letter_to_index(match.group(1))
        if _LETTERS_RE.match(column):
            return letter_to_index(column)
        header = grid[0]
        for idx, cell in enumerate(header):
            if cell.strip() == column:
                return idx
        return -1

    def get_sheet_info(self, path: Union[str, Path]) -> List[SheetInfo]:
        sheets = []
        for name, grid in self.read_workbook(path).items():
            if not grid:
                continue
            header, rows = grid[0], grid[1:]
            columns = [f"{index_to_letter(i)}: {h or '(empty)'}" for i, h in enumerate(header)]
            preview = [
                {col: (row[i] if i < len(row) else "") for i, col in enumerate(columns)}
                for row in rows[:PREVIEW_ROWS]
            ]
            sheets.append(SheetInfo(name=name, columns=columns, row_count=len(rows), preview=preview))
        return sheets

    def read_column_data(
        self,
        path: Union[str, Path],
        sheet_name: str,
        prompt_column: str,
        name_column: str | None = None,
    ) -> List[RowItem]:
        grid = self.read_sheet(path, sheet_name)
        prompt_idx = self.column_index(grid, prompt_column)
        name_idx = self.column_index(grid, name_column) if name_column else -1
        if prompt_idx == -1:
            raise SpreadsheetError(f'Column "{prompt_column}" not found in sheet "{sheet_name}"')

        items = []
        for idx, row in enumerate(grid[1:]):
            prompt = row[prompt_idx].strip() if prompt_idx < len(row) else ""
            if not prompt:
                continue
            name = ""
            if 0 <= name_idx < len(row):
                name = row[name_idx].strip()
            items.append(RowItem(
                name=name or f"Item_{idx + 1}",
                prompt=prompt,
                row_index=idx + 2, # header row + 1-based rows
            ))
        return items

    def read_column_values(self, path: Union[str, Path], sheet_name: str, column: str) -> List[str]:
        """Non-blank values of a column, in sheet order."""
        return [item.prompt for item in self.read_column_data(path, sheet_name, column)]

    def read_multiple_columns(
        self,
        path: Union[str, Path],
        sheet_name: str,
        columns: List[str],
    ) -> List[Dict[str, str]]:
        grid = self.read_sheet(path, sheet_name)
        indices = [(col, self.column_index(grid, col)) for col in columns]
        indices = [(col, idx) for col, idx in indices if idx >= 0]
        return [
            {col: (row[idx].strip() if idx < len(row) else "") for col, idx in indices}
            for row in grid[1:]
        ]
