from typing import Any, Dict, List
import logging
import os

from dotenv import load_dotenv

from models.errors import AITransformError
from repositories.openrouter_repository import OpenRouterRepository
from services.image_service import ImageService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DRESS_INSTRUCTIONS = """
TASK: Put the clothing from IMAGE 1 onto the mannequin from IMAGE 2.

IMAGE 1 (first image): the CLOTHING item to use
IMAGE 2+ (following images): the MANNEQUIN - keep this exact pose and position

Keep the original clothing colours and details, fit it to the mannequin body,
use a clean white/light studio background.
"""

MASK_INSTRUCTIONS = """
Create a precise BINARY SEGMENTATION MASK of ONLY the clothing.
The FIRST image is the dressed mannequin; any further images are references.

WHITE (#FFFFFF): all clothing fabric, belts and accessories on the clothing.
BLACK (#000000): all skin, hair, shoes and any body part.
GREEN (#00FF00): the background.

Only fabric may be white. Output a clean, flat mask image.
"""

EXTRACT_INSTRUCTIONS = """
IMAGE 1 is a dressed mannequin, IMAGE 2 its clothing mask (white = clothing).
Return IMAGE 1 with everything outside the white mask area removed,
on a plain green (#00FF00) background. Keep the clothing pixels identical.
"""


class AITransformService:
    """
    Opaque image transform: prompt (+ images) in, one image data URI out.
    """

    def __init__(self, repository: OpenRouterRepository | None = None):
        self.repository = repository or OpenRouterRepository()
        self.image_service = ImageService()
        self.image_model = os.getenv("OPENROUTER_IMAGE_MODEL", "google/gemini-2.5-flash-image")

    def _content(self, text: str, images: List[str]) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": text}]
        for img in images:
            content.append({"type": "image_url",
                            "image_url": {"url": self.image_service.ensure_data_uri(img)}})
        return content

    def _first_image(self, data: Dict[str, Any], step: str) -> str:
        images = self.repository.extract_images(data)
        if not images:
            raise AITransformError(f"No image returned for {step} (model: {self.image_model})")
        image = images[0]
        if image.startswith("http://") or image.startswith("https://"):
            image = self.repository.fetch_image(image)
        return image

    def transform(self, text: str, images: List[str], step: str = "transform") -> str:
        logger.info(f"[{step}] Sending {len(images)} image(s) to {self.image_model}")
        data = self.repository.complete(self.image_model, self._content(text, images))
        image = self._first_image(data, step)
        logger.info(f"[{step}] Image received")
        return image

    # ─── Pipeline steps ────────────────────────────────────────────
    def generate_image(self, prompt: str) -> str:
        return self.transform(f"Generate an image: {prompt}", [], step="generate")

    def dress_mannequin(self, clothing: str, mannequins: List[str], prompt: str) -> str:
        """Clothing image is always first, followed by the mannequin references."""
        return self.transform(f"{prompt}\n{DRESS_INSTRUCTIONS}", [clothing, *mannequins], step="dress")

    def generate_mask(self, dressed: str, references: List[str], prompt: str) -> str:
        return self.transform(f"{prompt}\n{MASK_INSTRUCTIONS}", [dressed, *references], step="mask")

    def extract_clothing(self, dressed: str, mask: str, prompt: str) -> str:
        return self.transform(f"{prompt}\n{EXTRACT_INSTRUCTIONS}", [dressed, mask], step="extract")
