from pathlib import Path
from time import time_ns
from typing import Iterable, List, Union
from urllib.parse import quote
import logging
import os

from dotenv import load_dotenv

from models.errors import InputNotFoundError
from repositories.file_repository import FileRepository, is_within, sanitize_file_name
from services.image_service import ImageService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class FileService:
    """
    Input resolution and flat-file output.

    Inputs are found in a fixed order:
        1. data URI → used as-is
        2. the path as given
        3. upload folder + file name
        4. output folder + relative path

    Only files inside the upload folder, the output folder or one of the
    extra `input_roots` are ever read.
    """

    def __init__(
            self,
            upload_dir: Union[str, Path, None] = None,
            output_dir: Union[str, Path, None] = None,
            input_roots: Iterable[Union[str, Path]] = (),
    ):
        self.upload_dir = Path(upload_dir or os.getenv("UPLOAD_FOLDER", "data/uploads"))
        self.output_dir = Path(output_dir or os.getenv("OUTPUT_FOLDER", "data/output"))
        self.input_roots = [self.upload_dir, self.output_dir, *(Path(root) for root in input_roots)]
        self.repository = FileRepository(self.output_dir)
        self.image_service = ImageService()

    def candidates(self, ref: str) -> List[Path]:
        path = Path(ref)
        return [
            path,
            self.upload_dir / path.name,
            self.output_dir / ref.lstrip("/"),
        ]

    def is_readable(self, path: Union[str, Path]) -> bool:
        return any(is_within(root, path) for root in self.input_roots)

    def local_path(self, ref: Union[str, Path]) -> Path:
        """`ref` as a Path, refused when it points outside the readable roots."""
        path = Path(ref)
        if not self.is_readable(path):
            raise PermissionError(f"Access denied: {ref}")
        return path

    def resolve_input(self, ref: str) -> str:
        """
        Args:
            ref (str): data URI or file path.

        Returns:
            (str): the image as a data URI.

        Raises:
            PermissionError: the only existing candidate lies outside the readable roots.
            InputNotFoundError: no candidate location exists.
        """
        if ref.startswith("data:"):
            return ref
        tried = self.candidates(ref)
        denied = None
        for candidate in tried:
            if not candidate.is_file():
                continue
            if not self.is_readable(candidate):
                denied = candidate
                continue
            logger.debug(f"Resolved input {ref} → {candidate}")
            return self.image_service.read_as_data_uri(candidate)
        if denied is not None:
            logger.warning(f"Refused input outside the upload/output folders: {denied}")
            raise PermissionError(f"Access denied: {ref}")
        raise InputNotFoundError(
            f"Image file not found: {ref} (tried: {', '.join(str(p) for p in tried)})"
        )

    def save_image(self, data_uri: str, sub_dir: Union[str, Path], file_name: str) -> Path:
        path = self.repository.save(sub_dir, file_name, data_uri)
        logger.info(f"Saved image to {path}")
        return path

    def save_upload(self, raw: bytes, file_name: str, kind: str | None = None) -> Path:
        name = f"{kind or 'file'}_{time_ns() // 1_000_000}_{sanitize_file_name(file_name)}"
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        path = self.upload_dir / name
        path.write_bytes(raw)
        return path

    def public_url(self, path: Union[str, Path]) -> str:
        """Relative download URL for a file under the output folder."""
        rel = Path(path).resolve().relative_to(self.output_dir.resolve())
        return f"/api/files/download?path={quote(rel.as_posix())}"

    def file_tree(self) -> dict:
        tree = self.repository.tree()
        return {"tree": tree, "stats": self.repository.tree_stats(tree)}

    def delete(self, relative: str) -> Path:
        return self.repository.delete(relative)

    def output_path(self, relative: str) -> Path:
        target = (self.output_dir / relative).resolve()
        if not self.repository.contains(target):
            raise PermissionError(f"Access denied: {relative}")
        return target
