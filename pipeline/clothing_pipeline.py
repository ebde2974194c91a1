# pipeline/clothing_pipeline.py
"""
Spreadsheet-driven clothing pipeline.

For every selected row:
    1. generate  – image from the row prompt
    2. dress     – put the garment on the mannequin references
    3. mask      – clothing mask (code / ai / chroma, see mask_extractor)
    4. extract   – transparent clothing-only cut-out
    5. save      – file under <output>/<folder>/<filename>.png

run_pipeline() is a generator of progress events (plain dicts) so the
API server can stream them as Server-Sent Events and the CLI can log them.
A failing row yields an item_error event and the run moves on.
"""
from pathlib import Path
from typing import Dict, Iterator, List
import logging

from models.pipeline_item import PipelineConfig, RowItem
from pipeline.mask_extractor import create_mask, extract_clothing
from repositories.file_repository import sanitize_file_name
from services.ai_transform_service import AITransformService
from services.chroma_key_service import ChromaKeyService
from services.file_service import FileService
from services.mask_service import MaskService
from services.segmentation_service import SegmentationService
from services.spreadsheet_service import SpreadsheetService, replace_variables, select_rows

logger = logging.getLogger(__name__)

STEPS_PER_ITEM = 5


class _Progress:
    def __init__(self, total_items: int):
        self.total = max(1, total_items * STEPS_PER_ITEM)
        self.completed = 0

    def advance(self, steps: int = 1) -> float:
        self.completed += steps
        return round(10 + self.completed / self.total * 85, 2)


def _at(values: List[str], i: int) -> str:
    return values[i] if i < len(values) else ""


def _load_images(paths: List[str], file_service: FileService, label: str) -> List[str]:
    images = []
    for p in paths:
        try:
            images.append(file_service.resolve_input(p))
            logger.info(f"[Load] {label}: {p} ✓")
        except (FileNotFoundError, OSError) as err:
            logger.error(f"[Load] {label} failed: {p} ({err})")
    return images


def run_pipeline(
    config: PipelineConfig,
    *,
    spreadsheet_service: SpreadsheetService | None = None,
    ai_service: AITransformService | None = None,
    file_service: FileService | None = None,
    segmentation_service: SegmentationService | None = None,
    mask_service: MaskService | None = None,
    chroma_service: ChromaKeyService | None = None,
) -> Iterator[Dict]:
    spreadsheet_service = spreadsheet_service or SpreadsheetService()
    ai_service = ai_service or AITransformService()
    file_service = file_service or FileService()
    segmentation_service = segmentation_service or SegmentationService()
    mask_service = mask_service or MaskService()
    chroma_service = chroma_service or ChromaKeyService()

    try:
        yield {"type": "progress", "message": "Reading spreadsheet...", "progress": 0}

        items: List[RowItem] = spreadsheet_service.read_column_data(
            config.excel_path, config.step1.sheet, config.step1.prompt_col
        )
        items = select_rows(items, config.row_mode, config.row_start, config.row_end, config.row_count)
        yield {"type": "progress", "message": f"Found {len(items)} items", "progress": 2}
        if not items:
            yield {"type": "error", "message": "No items"}
            return

        step2_prompts, step2_vars = spreadsheet_service.read_step_prompts(config.excel_path, config.step2)
        step3_prompts, step3_vars = spreadsheet_service.read_step_prompts(config.excel_path, config.step3)
        step4_prompts, step4_vars = spreadsheet_service.read_step_prompts(config.excel_path, config.step4)
        save_paths = spreadsheet_service.read_save_paths(
            config.excel_path, config.save_sheet, config.save_folder_col, config.save_file_col
        )
        yield {"type": "progress", "progress": 6,
               "message": f"Prompts: step 2 {len(step2_prompts)}, step 3 {len(step3_prompts)}, "
                          f"step 4 {len(step4_prompts)}, save paths {len(save_paths)}"}

        mannequins = _load_images(config.mannequin_images, file_service, "Step 2 mannequin")
        references = _load_images(config.reference_images, file_service, "Step 3 reference")
        yield {"type": "progress", "progress": 8,
               "message": f"{len(mannequins)} mannequin / {len(references)} reference images loaded"}

        yield {"type": "progress", "message": f"Starting pipeline (mask mode: {config.mask_mode})", "progress": 10}
        progress = _Progress(len(items))

        for i, item in enumerate(items):
            item_name = sanitize_file_name(item.name or f"Item_{i + 1}")
            yield {"type": "item_start", "itemIndex": i, "itemName": item.name,
                   "message": f"Processing {i + 1}/{len(items)}: {item.name}"}
            steps_done = 0

            def saved(image: str, step: int) -> str:
                path = file_service.save_image(image, item_name, f"{item_name}_step{step}")
                return file_service.public_url(path)

            try:
                # ── Step 1: generate ──
                yield {"type": "step_start", "itemIndex": i, "step": 1, "prompt": item.prompt,
                       "message": f"[{item.name}] Step 1: Generating..."}
                step1_image = ai_service.generate_image(item.prompt)
                steps_done += 1
                yield {"type": "step_complete", "itemIndex": i, "step": 1, "imageUrl": saved(step1_image, 1),
                       "message": f"[{item.name}] Step 1 ✓", "progress": progress.advance()}

                # ── Step 2: dress mannequin ──
                step2_prompt = _at(step2_prompts, i)
                if step2_prompt:
                    step2_prompt = replace_variables(step2_prompt, _at(step2_vars, i))
                    yield {"type": "step_start", "itemIndex": i, "step": 2, "prompt": step2_prompt,
                           "message": f"[{item.name}] Step 2: Dressing mannequin..."}
                    dressed = ai_service.dress_mannequin(step1_image, mannequins, step2_prompt)
                    steps_done += 1
                    yield {"type": "step_complete", "itemIndex": i, "step": 2, "imageUrl": saved(dressed, 2),
                           "message": f"[{item.name}] Step 2 ✓", "progress": progress.advance()}
                else:
                    dressed = step1_image
                    steps_done += 1
                    progress.advance()
                    yield {"type": "step_skip", "itemIndex": i, "step": 2,
                           "message": f"[{item.name}] Step 2 skipped (no prompt)"}

                # ── Step 3: mask ──
                step3_prompt = replace_variables(_at(step3_prompts, i), _at(step3_vars, i))
                mask = None
                if config.mask_mode == "code" or (config.mask_mode == "ai" and step3_prompt):
                    yield {"type": "step_start", "itemIndex": i, "step": 3, "prompt": step3_prompt,
                           "message": f"[{item.name}] Step 3: Creating mask ({config.mask_mode})..."}
                    mask = create_mask(dressed, mode=config.mask_mode, prompt=step3_prompt,
                                       references=references,
                                       segmentation_service=segmentation_service,
                                       ai_service=ai_service, chroma_service=chroma_service)
                    steps_done += 1
                    yield {"type": "step_complete", "itemIndex": i, "step": 3, "imageUrl": saved(mask, 3),
                           "message": f"[{item.name}] Step 3 ✓", "progress": progress.advance()}
                else:
                    steps_done += 1
                    progress.advance()
                    yield {"type": "step_skip", "itemIndex": i, "step": 3,
                           "message": f"[{item.name}] Step 3 skipped"}

                # ── Step 4: extract ──
                step4_prompt = replace_variables(_at(step4_prompts, i), _at(step4_vars, i))
                if mask is not None or config.mask_mode == "chroma":
                    yield {"type": "step_start", "itemIndex": i, "step": 4, "prompt": step4_prompt,
                           "message": f"[{item.name}] Step 4: Extracting..."}
                    source = dressed
                    if config.mask_mode == "ai" and step4_prompt:
                        source = ai_service.extract_clothing(dressed, mask, step4_prompt)
                        mask = None
                    final_image = extract_clothing(source, mask,
                                                   mode="chroma" if mask is None else config.mask_mode,
                                                   mask_service=mask_service,
                                                   chroma_service=chroma_service)
                    steps_done += 1
                    yield {"type": "step_complete", "itemIndex": i, "step": 4, "imageUrl": saved(final_image, 4),
                           "message": f"[{item.name}] Step 4 ✓", "progress": progress.advance()}
                else:
                    final_image = dressed
                    steps_done += 1
                    progress.advance()
                    yield {"type": "step_skip", "itemIndex": i, "step": 4,
                           "message": f"[{item.name}] Step 4 skipped"}

                # ── Step 5: save ──
                if i < len(save_paths):
                    target = save_paths[i]
                    yield {"type": "step_start", "itemIndex": i, "step": 5,
                           "message": f"[{item.name}] Step 5: Saving..."}
                    path = file_service.save_image(final_image, target.folder, target.filename)
                    steps_done += 1
                    rel = f"{target.folder}/{Path(path).name}"
                    yield {"type": "step_complete", "itemIndex": i, "step": 5, "savedPath": rel,
                           "downloadUrl": file_service.public_url(path),
                           "message": f"[{item.name}] Saved: {rel}", "progress": progress.advance()}
                else:
                    steps_done += 1
                    progress.advance()
                    yield {"type": "step_skip", "itemIndex": i, "step": 5,
                           "message": f"[{item.name}] Step 5 skipped"}

                yield {"type": "item_complete", "itemIndex": i, "itemName": item.name,
                       "message": f"✓ {item.name} complete"}
            except Exception as err:
                logger.error(f"Item {item.name} failed: {err}", extra={"item": item.name, "row": item.row_index})
                yield {"type": "item_error", "itemIndex": i, "itemName": item.name, "error": str(err),
                       "message": f"✗ {item.name}: {err}",
                       "progress": progress.advance(STEPS_PER_ITEM - steps_done)}

        yield {"type": "done", "message": f"Complete! {len(items)} items.", "progress": 100}
    except Exception as err:
        logger.error(f"Pipeline failed: {err}")
        yield {"type": "error", "message": str(err)}
