import pandas as pd
import pytest

from models.errors import AITransformError
from models.pipeline_item import PipelineConfig, StepColumns
from pipeline.clothing_pipeline import run_pipeline
from pipeline.mask_extractor import create_mask, extract_clothing
from services.file_service import FileService
from services.image_service import ImageService
from tests.conftest import make_image


class FakeAI:
    """Stands in for the image model: renders a garment on a studio or green backdrop."""

    def __init__(self, background=(245, 245, 245)):
        self.image_service = ImageService()
        self.background = background
        self.calls = []

    def _garment(self):
        image = make_image(60, 60, self.background, [((20, 20, 39, 39), (60, 90, 160))])
        return self.image_service.encode_data_uri(image)

    def generate_image(self, prompt):
        self.calls.append(("generate", prompt))
        if "boom" in prompt:
            raise AITransformError("model refused")
        return self._garment()

    def dress_mannequin(self, clothing, mannequins, prompt):
        self.calls.append(("dress", prompt, len(mannequins)))
        return self._garment()

    def generate_mask(self, dressed, references, prompt):
        self.calls.append(("mask", prompt))
        image = make_image(60, 60, (0, 255, 0), [((20, 20, 39, 39), (255, 255, 255))])
        return self.image_service.encode_data_uri(image)

    def extract_clothing(self, dressed, mask, prompt):
        self.calls.append(("extract", prompt))
        return self._garment()


@pytest.fixture
def workbook(tmp_path):
    path = tmp_path / "prompts.xlsx"
    pd.DataFrame({
        "Name": ["Shirt", "Bad"],
        "Prompt": ["red shirt", "boom"],
        "Dress": ["dress in {{x}}", None],
        "Var": ["linen", None],
        "Folder": ["tops", "misc"],
        "File": ["red shirt", "bad"],
    }).to_excel(path, sheet_name="Sheet1", index=False)
    return path


@pytest.fixture
def file_service(tmp_path):
    return FileService(tmp_path / "uploads", tmp_path / "output")


def config_for(workbook, **overrides):
    values = dict(
        excel_path=workbook,
        step1=StepColumns("Sheet1", "B"),
        save_sheet="Sheet1",
        save_folder_col="E",
        save_file_col="F",
    )
    values.update(overrides)
    return PipelineConfig(**values)


def test_code_mode_run(workbook, file_service, tmp_path):
    ai = FakeAI()
    events = list(run_pipeline(config_for(workbook, step2=StepColumns("Sheet1", "C", "D")),
                               ai_service=ai, file_service=file_service))
    types = [e["type"] for e in events]

    assert types[-1] == "done"
    assert types.count("item_complete") == 1
    assert types.count("item_error") == 1
    assert ("dress", "dress in linen", 0) in ai.calls

    saved = [e for e in events if e["type"] == "step_complete" and e["step"] == 5]
    assert saved[0]["savedPath"] == "tops/red_shirt.png"
    final = ImageService().load(tmp_path / "output" / "tops" / "red_shirt.png")
    assert final.alpha[0, 0] == 0
    assert final.alpha[30, 30] == 255

    assert (tmp_path / "output" / "Shirt" / "Shirt_step3.png").is_file()

    error = next(e for e in events if e["type"] == "item_error")
    assert error["itemName"] == "Bad"
    assert error["progress"] == 95.0


def test_progress_is_monotonic(workbook, file_service):
    events = run_pipeline(config_for(workbook), ai_service=FakeAI(), file_service=file_service)
    progress = [e["progress"] for e in events if "progress" in e]
    assert progress == sorted(progress)
    assert progress[-1] == 100


def test_unconfigured_steps_are_skipped(workbook, file_service):
    config = config_for(workbook, save_sheet=None, row_mode="count", row_count=1)
    events = list(run_pipeline(config, ai_service=FakeAI(), file_service=file_service))
    skipped = [e["step"] for e in events if e["type"] == "step_skip"]
    assert skipped == [2, 5]
    assert sum(e["type"] == "item_start" for e in events) == 1


def test_chroma_mode_keys_out_green(workbook, file_service, tmp_path):
    config = config_for(workbook, mask_mode="chroma", row_mode="range", row_start=1, row_end=1)
    events = list(run_pipeline(config, ai_service=FakeAI(background=(0, 255, 0)), file_service=file_service))
    assert [e["step"] for e in events if e["type"] == "step_skip"] == [2, 3]
    final = ImageService().load(tmp_path / "output" / "tops" / "red_shirt.png")
    assert final.alpha[0, 0] == 0
    assert final.alpha[30, 30] == 255


def test_ai_mode_uses_model_mask(workbook, file_service):
    ai = FakeAI()
    config = config_for(workbook, mask_mode="ai", row_mode="count", row_count=1,
                        step3=StepColumns("Sheet1", "B"))
    events = list(run_pipeline(config, ai_service=ai, file_service=file_service))
    assert ("mask", "red shirt") in ai.calls
    assert any(e["type"] == "step_complete" and e["step"] == 4 for e in events)


def test_missing_workbook_is_a_pipeline_error(tmp_path, file_service):
    events = list(run_pipeline(config_for(tmp_path / "nope.xlsx"), ai_service=FakeAI(), file_service=file_service))
    assert events[-1]["type"] == "error"


def test_extract_clothing_with_bad_mask_keeps_dressed(studio_data_uri):
    assert extract_clothing(studio_data_uri, "data:image/png;base64,AAAA") == studio_data_uri


def test_create_mask_modes(studio_data_uri):
    assert create_mask(studio_data_uri, mode="chroma") is None
    mask = ImageService().decode_data_uri(create_mask(studio_data_uri, mode="code"))
    assert mask.get_pixel(50, 50)[:3] == (255, 255, 255)
    with pytest.raises(ValueError):
        create_mask(studio_data_uri, mode="magic")
