from pathlib import Path
from typing import List, Union
import logging
import re

from models.errors import SpreadsheetError
from models.pipeline_item import RowItem, SavePath, SheetInfo, StepColumns
from repositories.spreadsheet_repository import SpreadsheetRepository
from repositories.file_repository import sanitize_file_name

logger = logging.getLogger(__name__)

_VARIABLE_RE = re.compile(r"\{\{[^}]+\}\}")


def replace_variables(prompt: str, value: str) -> str:
    """Every {{placeholder}} in the prompt becomes `value`."""
    return _VARIABLE_RE.sub(lambda _: value, prompt)


def select_rows(
    items: List[RowItem],
    mode: str = "all",
    start: int | None = None,
    end: int | None = None,
    count: int | None = None,
) -> List[RowItem]:
    """
    mode="count" → first `count` items
    mode="range" → items start..end (1-based, inclusive, by position)
    anything else → all items
    """
    if mode == "count" and count:
        return items[:int(count)]
    if mode == "range" and start and end:
        return [item for pos, item in enumerate(items, 1) if int(start) <= pos <= int(end)]
    return list(items)


class SpreadsheetService:
    """Business-level access to prompt rows, per-step prompt columns and save paths."""

    def __init__(self):
        self.repository = SpreadsheetRepository()

    def get_sheet_info(self, path: Union[str, Path]) -> List[SheetInfo]:
        return self.repository.get_sheet_info(path)

    def read_column_data(self, path, sheet_name, prompt_column, name_column=None) -> List[RowItem]:
        return self.repository.read_column_data(path, sheet_name, prompt_column, name_column)

    def read_step_prompts(self, path: Union[str, Path], step: StepColumns) -> tuple[List[str], List[str]]:
        """
        Prompts and variables for an optional step. A step that is not
        configured or cannot be read yields empty lists (the step is skipped).
        """
        if not step.sheet or not step.prompt_col:
            return [], []
        try:
            prompts = self.repository.read_column_values(path, step.sheet, step.prompt_col)
            variables = []
            if step.variable_col:
                variables = self.repository.read_column_values(path, step.sheet, step.variable_col)
        except SpreadsheetError as err:
            logger.warning(f"Step columns unreadable, step will be skipped: {err}")
            return [], []
        return prompts, variables

    def read_save_paths(
        self,
        path: Union[str, Path],
        sheet: str | None,
        folder_col: str | None,
        file_col: str | None,
    ) -> List[SavePath]:
        if not (sheet and folder_col and file_col):
            return []
        try:
            folders = self.repository.read_column_values(path, sheet, folder_col)
            files = self.repository.read_column_values(path, sheet, file_col)
        except SpreadsheetError as err:
            logger.warning(f"Save columns unreadable, results will not be filed: {err}")
            return []
        return [
            SavePath(folder=sanitize_file_name(folder or f"folder_{i}"),
                     filename=sanitize_file_name(filename or f"file_{i}"))
            for i, (folder, filename) in enumerate(zip(folders, files))
        ]
