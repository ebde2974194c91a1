from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List


@dataclass
class RowItem:
    """One spreadsheet row: display name, prompt text and 1-based sheet row."""
    name: str
    prompt: str
    row_index: int


@dataclass
class SheetInfo:
    name: str
    columns: List[str] # "A: Header" labels, duplicates and blanks kept
    row_count: int
    preview: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "columns": self.columns,
            "rowCount": self.row_count,
            "preview": self.preview,
        }


@dataclass
class StepColumns:
    """Where a pipeline step reads its prompt (and optional variable) from."""
    sheet: str | None = None
    prompt_col: str | None = None
    variable_col: str | None = None


@dataclass
class PipelineConfig:
    """
    Everything one pipeline run needs.
    Steps: 1 generate → 2 dress → 3 mask → 4 extract → 5 save.
    """
    excel_path: Path
    step1: StepColumns
    step2: StepColumns = field(default_factory=StepColumns)
    step3: StepColumns = field(default_factory=StepColumns)
    step4: StepColumns = field(default_factory=StepColumns)
    save_sheet: str | None = None
    save_folder_col: str | None = None
    save_file_col: str | None = None
    mannequin_images: List[str] = field(default_factory=list)
    reference_images: List[str] = field(default_factory=list)
    mask_mode: str = "code" # "code" | "ai" | "chroma"
    row_mode: str = "all" # "all" | "count" | "range"
    row_start: int | None = None
    row_end: int | None = None
    row_count: int | None = None

    @classmethod
    def from_request(cls, body: dict) -> "PipelineConfig":
        """Build a config from the camelCase JSON body posted by the web UI."""
        def step(n: int) -> StepColumns:
            return StepColumns(
                sheet=body.get(f"step{n}Sheet"),
                prompt_col=body.get(f"step{n}PromptCol"),
                variable_col=body.get(f"step{n}VariableCol"),
            )

        return cls(
            excel_path=Path(body["excelPath"]),
            step1=step(1),
            step2=step(2),
            step3=step(3),
            step4=step(4),
            save_sheet=body.get("step5Sheet"),
            save_folder_col=body.get("step5FolderCol"),
            save_file_col=body.get("step5FileCol"),
            mannequin_images=list(body.get("step2Images") or []),
            reference_images=list(body.get("step3Images") or []),
            mask_mode=body.get("maskMode") or "code",
            row_mode=body.get("rowMode") or "all",
            row_start=body.get("rowStart"),
            row_end=body.get("rowEnd"),
            row_count=body.get("rowCount"),
        )


@dataclass
class SavePath:
    folder: str
    filename: str
