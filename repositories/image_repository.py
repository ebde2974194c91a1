from pathlib import Path
from typing import Tuple, Union
import base64
import binascii
import io
import re

import numpy as np
from PIL import Image as PILImage, UnidentifiedImageError

from models.errors import ImageDecodeError
from models.pixel_buffer import PixelBuffer

_DATA_URI_RE = re.compile(r"^data:(image/[\w.+-]+);base64,", re.IGNORECASE)

MIME_BY_EXT = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}

EXT_BY_MIME = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}


class ImageRepository:
    """
    Codec layer: bytes / data URIs / files  <->  PixelBuffer.
    The only place that touches Pillow.
    """

    # ---------- data URIs ----------
    @staticmethod
    def parse_data_uri(data_uri: str) -> Tuple[str, bytes]:
        """
        Split "data:image/<fmt>;base64,<payload>" into (mime, raw bytes).
        A bare base64 payload without prefix is treated as PNG.
        """
        match = _DATA_URI_RE.match(data_uri)
        if match:
            mime = match.group(1).lower()
            payload = data_uri[match.end():]
        else:
            mime = "image/png"
            payload = data_uri
        try:
            raw = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as err:
            raise ImageDecodeError(f"Invalid base64 image payload: {err}") from err
        return mime, raw

    @staticmethod
    def to_data_uri(raw: bytes, mime: str = "image/png") -> str:
        return f"data:{mime};base64,{base64.b64encode(raw).decode('utf-8')}"

    @staticmethod
    def mime_for_path(path: Union[str, Path]) -> str:
        return MIME_BY_EXT.get(Path(path).suffix.lower(), "image/png")

    @staticmethod
    def ext_for_data_uri(data_uri: str) -> str:
        match = _DATA_URI_RE.match(data_uri)
        mime = match.group(1).lower() if match else "image/png"
        return EXT_BY_MIME.get(mime, ".png")

    # ---------- codec ----------
    @staticmethod
    def decode(raw: bytes, path: Union[str, Path, None] = None) -> PixelBuffer:
        """Decode PNG/JPEG/WebP/... bytes into an RGBA PixelBuffer (alpha forced)."""
        if not raw:
            raise ImageDecodeError("Empty image payload")
        try:
            with PILImage.open(io.BytesIO(raw)) as pil:
                rgba = pil.convert("RGBA")
        except (UnidentifiedImageError, OSError, ValueError) as err:
            raise ImageDecodeError(f"Cannot decode image: {err}") from err
        return PixelBuffer(pixels=np.array(rgba, dtype=np.uint8),
                           path=Path(path) if path else None)

    @staticmethod
    def encode(buffer: PixelBuffer, fmt: str = "PNG") -> bytes:
        pil = PILImage.fromarray(buffer.pixels, mode="RGBA")
        if fmt.upper() in ("JPEG", "JPG"):
            pil = pil.convert("RGB")
            fmt = "JPEG"
        out = io.BytesIO()
        pil.save(out, format=fmt)
        return out.getvalue()

    def decode_data_uri(self, data_uri: str) -> PixelBuffer:
        _, raw = self.parse_data_uri(data_uri)
        return self.decode(raw)

    def encode_data_uri(self, buffer: PixelBuffer) -> str:
        return self.to_data_uri(self.encode(buffer), "image/png")

    # ---------- files ----------
    def load(self, path: Union[str, Path]) -> PixelBuffer:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        return self.decode(path.read_bytes(), path=path)

    def save(self, buffer: PixelBuffer, path: Union[str, Path, None] = None) -> Path:
        target = path or buffer.path
        if target is None:
            raise ValueError("No path given for PixelBuffer save")
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        fmt = {".jpg": "JPEG", ".jpeg": "JPEG", ".webp": "WEBP"}.get(target.suffix.lower(), "PNG")
        target.write_bytes(self.encode(buffer, fmt=fmt))
        buffer.path = target
        return target
