from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union
import re
import shutil

from repositories.image_repository import ImageRepository

_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9_\-.]")
_RUNS_RE = re.compile(r"_+")
MAX_NAME_LENGTH = 100


def sanitize_file_name(name: str) -> str:
    """Keep [A-Za-z0-9_.-], replace the rest with '_', collapse runs, cap at 100 chars."""
    return _RUNS_RE.sub("_", _UNSAFE_RE.sub("_", name))[:MAX_NAME_LENGTH]


def is_within(root: Union[str, Path], path: Union[str, Path]) -> bool:
    root = Path(root).resolve()
    target = Path(path).resolve()
    return target == root or root in target.parents


class FileRepository:
    """
    Flat-file persistence under a single output root.
    """
    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.image_repository = ImageRepository()

    def ensure_dir(self, directory: Union[str, Path]) -> Path:
        """Create `directory` (relative to the root); it must stay inside the root."""
        directory = Path(directory)
        if not directory.is_absolute():
            directory = self.root / directory
        if not self.contains(directory):
            raise PermissionError(f"Access denied: {directory}")
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def save(self, directory: Union[str, Path], filename: str, data: Union[bytes, str]) -> Path:
        """
        Write `data` (raw bytes or an image data URI) to directory/filename.
        A filename without extension gets one from the data URI mime (.png default).
        """
        target_dir = self.ensure_dir(directory)
        if isinstance(data, str):
            if "." not in filename:
                filename = f"{filename}{self.image_repository.ext_for_data_uri(data)}"
            _, data = self.image_repository.parse_data_uri(data)
        elif "." not in filename:
            filename = f"{filename}.png"
        path = target_dir / filename
        if path.resolve().parent != target_dir.resolve():
            raise PermissionError(f"Access denied: {path}")
        path.write_bytes(data)
        return path

    def contains(self, path: Union[str, Path]) -> bool:
        return is_within(self.root, path)

    def delete(self, relative: Union[str, Path]) -> Path:
        target = (self.root / relative).resolve()
        if not self.contains(target) or target == self.root.resolve():
            raise PermissionError(f"Access denied: {relative}")
        if not target.exists():
            raise FileNotFoundError(f"File not found: {relative}")
        if target.is_dir():
            shutil.rmtree(target)
        else:
            target.unlink()
        return target

    def tree(self, directory: Union[str, Path, None] = None, base: Path = Path("")) -> List[dict]:
        """Folders first, then files, each group by name."""
        directory = Path(directory) if directory else self.root
        if not directory.is_dir():
            return []

        items = []
        for entry in directory.iterdir():
            rel = base / entry.name
            if entry.is_dir():
                items.append({
                    "name": entry.name,
                    "path": rel.as_posix(),
                    "type": "folder",
                    "children": self.tree(entry, rel),
                })
            elif entry.is_file():
                stat = entry.stat()
                items.append({
                    "name": entry.name,
                    "path": rel.as_posix(),
                    "type": "file",
                    "size": stat.st_size,
                    "modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                    "extension": entry.suffix.lower(),
                })
        items.sort(key=lambda item: (item["type"] != "folder", item["name"]))
        return items

    @staticmethod
    def tree_stats(items: List[dict]) -> dict:
        folders = files = total_size = 0
        for item in items:
            if item["type"] == "folder":
                folders += 1
                child = FileRepository.tree_stats(item.get("children", []))
                folders += child["folders"]
                files += child["files"]
                total_size += child["totalSize"]
            else:
                files += 1
                total_size += item.get("size", 0)
        return {"folders": folders, "files": files, "totalSize": total_size}
