import os
import sys
import logging
import argparse
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from tqdm import tqdm

from models.pipeline_item import PipelineConfig, StepColumns
from pipeline.clothing_pipeline import run_pipeline
from pipeline.mask_extractor import MASK_MODES
from services.file_service import FileService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clothing-pipeline",
        description="Generate, dress, mask and cut out clothing for every row of a spreadsheet."
    )
    parser.add_argument("spreadsheet", type=Path, help="Excel workbook with the prompts")
    parser.add_argument("--sheet", required=True, help="Sheet holding the step 1 prompts")
    parser.add_argument("--prompt-col", required=True, help="Step 1 prompt column (letter, 'A: Header' or header)")

    for n, label in ((2, "dress"), (3, "mask"), (4, "extract")):
        parser.add_argument(f"--step{n}-sheet", help=f"Sheet with the {label} prompts (defaults to --sheet)")
        parser.add_argument(f"--step{n}-col", help=f"Column with the {label} prompts")
        parser.add_argument(f"--step{n}-var-col", help=f"Column replacing {{{{...}}}} in the {label} prompts")

    parser.add_argument("--save-sheet", help="Sheet with the save folder / file name columns")
    parser.add_argument("--folder-col", help="Save folder column")
    parser.add_argument("--file-col", help="Save file name column")
    parser.add_argument("--mannequin", action="append", default=[], help="Mannequin image (repeatable)")
    parser.add_argument("--reference", action="append", default=[], help="Mask reference image (repeatable)")
    parser.add_argument("--mask-mode", choices=MASK_MODES, default=os.getenv("MASK_MODE", "code"))

    rows = parser.add_mutually_exclusive_group()
    rows.add_argument("--count", type=int, help="Only the first N rows")
    rows.add_argument("--range", nargs=2, type=int, metavar=("START", "END"),
                      help="1-based inclusive row range")
    return parser


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    def step(n: int) -> StepColumns:
        column = getattr(args, f"step{n}_col")
        return StepColumns(
            sheet=(getattr(args, f"step{n}_sheet") or args.sheet) if column else None,
            prompt_col=column,
            variable_col=getattr(args, f"step{n}_var_col"),
        )

    row_mode = "count" if args.count else "range" if args.range else "all"
    return PipelineConfig(
        excel_path=args.spreadsheet,
        step1=StepColumns(sheet=args.sheet, prompt_col=args.prompt_col),
        step2=step(2),
        step3=step(3),
        step4=step(4),
        save_sheet=args.save_sheet,
        save_folder_col=args.folder_col,
        save_file_col=args.file_col,
        mannequin_images=args.mannequin,
        reference_images=args.reference,
        mask_mode=args.mask_mode,
        row_mode=row_mode,
        row_start=args.range[0] if args.range else None,
        row_end=args.range[1] if args.range else None,
        row_count=args.count,
    )


def main(argv=None) -> int:
    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    print(f"\nStarting clothing pipeline for {config.excel_path} (mask mode: {config.mask_mode})...")

    # images named on the command line are readable wherever they live
    image_dirs = {Path(p).resolve().parent for p in config.mannequin_images + config.reference_images}
    file_service = FileService(input_roots=image_dirs)

    failed, completed, saved = [], 0, []
    bar = None
    for event in run_pipeline(config, file_service=file_service):
        kind = event["type"]
        if kind == "item_start":
            if bar is None:
                bar = tqdm(desc="Items", unit="item")
            bar.set_postfix_str(event["itemName"])
            logger.info(event["message"])
        elif kind == "item_complete":
            completed += 1
            bar.update(1)
        elif kind == "item_error":
            failed.append(event["itemName"])
            logger.error(event["message"])
            bar.update(1)
        elif kind == "step_complete" and event.get("savedPath"):
            saved.append(event["savedPath"])
        elif kind == "error":
            logger.error(event["message"])
            failed.append("<pipeline>")
        else:
            logger.debug(event["message"])

    if bar is not None:
        bar.close()

    print(f"\nPipeline complete! {completed} item(s) done, {len(failed)} failed.")
    for rel in saved:
        print(f"   saved: {rel}")
    if failed:
        print(f"Failed: {', '.join(failed)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
