from pathlib import Path
from typing import Union
import logging

from models.pixel_buffer import PixelBuffer
from repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)


class ImageService:
    """I/O helpers.  No mask logic, no HTTP."""
    def __init__(self):
        self.image_repository = ImageRepository()

    def load(self, path: Union[str, Path]) -> PixelBuffer:
        """Load a single image from disk into a PixelBuffer."""
        return self.image_repository.load(path)

    def save(self, buffer: PixelBuffer, path: Union[str, Path, None] = None) -> Path:
        return self.image_repository.save(buffer, path)

    def decode_data_uri(self, data_uri: str) -> PixelBuffer:
        """
        Args:
            data_uri (str): "data:image/<fmt>;base64,<payload>" (or bare base64).

        Returns:
            (PixelBuffer): RGBA pixels, alpha forced.

        Raises:
            ImageDecodeError: payload is not an image.
        """
        return self.image_repository.decode_data_uri(data_uri)

    def encode_data_uri(self, buffer: PixelBuffer) -> str:
        return self.image_repository.encode_data_uri(buffer)

    def read_as_data_uri(self, path: Union[str, Path]) -> str:
        path = Path(path)
        data_uri = self.image_repository.to_data_uri(
            path.read_bytes(), self.image_repository.mime_for_path(path)
        )
        logger.debug(f"Read {path} as data URI ({len(data_uri)} chars)")
        return data_uri

    def ensure_data_uri(self, base64_or_uri: str) -> str:
        """Prefix a bare base64 payload with a PNG data URI header."""
        if base64_or_uri.startswith("data:image/"):
            return base64_or_uri
        return f"data:image/png;base64,{base64_or_uri}"
