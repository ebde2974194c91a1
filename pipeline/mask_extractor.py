# pipeline/mask_extractor.py
"""
Steps 3 and 4: clothing mask, then cut-out.

Mask modes
    code   → code-based mask (background flood fill + mannequin skin removal),
             applied with feathering, then edge anti-aliasing.
    ai     → mask drawn by the image model, green background normalised away,
             applied the same way.
    chroma → no mask; the dressed image is expected on a green screen.
"""
from typing import List
import logging

from services.ai_transform_service import AITransformService
from services.chroma_key_service import ChromaKeyService
from services.edge_service import feather_edges
from services.image_service import ImageService
from services.mask_service import MaskService
from services.segmentation_service import SegmentationService

logger = logging.getLogger(__name__)

MASK_MODES = ("code", "ai", "chroma")


def create_mask(
    dressed: str,
    *,
    mode: str = "code",
    prompt: str = "",
    references: List[str] | None = None,
    segmentation_service: SegmentationService | None = None,
    ai_service: AITransformService | None = None,
    chroma_service: ChromaKeyService | None = None,
) -> str | None:
    """
    Returns the mask as a data URI, or None in chroma mode.
    Decode failures of `dressed` propagate (ImageDecodeError).
    """
    if mode not in MASK_MODES:
        raise ValueError(f"Unknown mask mode: {mode}")
    if mode == "chroma":
        return None
    if mode == "code":
        segmentation_service = segmentation_service or SegmentationService()
        return segmentation_service.build_mask_data_uri(dressed)

    ai_service = ai_service or AITransformService()
    chroma_service = chroma_service or ChromaKeyService()
    raw_mask = ai_service.generate_mask(dressed, references or [], prompt)
    result = chroma_service.convert_green_to_transparent_data_uri(raw_mask)
    return result.image


def extract_clothing(
    dressed: str,
    mask: str | None,
    *,
    mode: str = "code",
    mask_service: MaskService | None = None,
    chroma_service: ChromaKeyService | None = None,
    image_service: ImageService | None = None,
) -> str:
    """
    Cut the clothing out of `dressed`. Best effort: a mask that cannot be
    applied leaves the dressed image unchanged (logged as degraded).
    """
    image_service = image_service or ImageService()
    if mode == "chroma" or mask is None:
        chroma_service = chroma_service or ChromaKeyService()
        result = chroma_service.remove_green_screen_data_uri(dressed)
    else:
        mask_service = mask_service or MaskService()
        result = mask_service.apply_mask_data_uri(dressed, mask)

    if result.degraded:
        logger.warning(f"Extraction degraded, keeping dressed image: {result.reason}")
        return result.image

    cut_out = image_service.decode_data_uri(result.image)
    return image_service.encode_data_uri(feather_edges(cut_out))
