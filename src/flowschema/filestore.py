"""
File-store collaborators.

The orchestrator never touches the file system directly; it reads and
writes through an object implementing the FileStore protocol. Paths are
POSIX-style strings relative to the store.
"""

from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Protocol, Union


class FileStore(Protocol):
    """Minimal storage interface required by the orchestrator."""

    def read(self, path: str) -> str:
        ...

    def write(self, path: str, content: str) -> None:
        ...

    def exists(self, path: str) -> bool:
        ...

    def list_tree(self, root: str = "") -> List[str]:
        """All file paths under `root`, sorted."""
        ...


class LocalFileStore:
    """FileStore backed by a directory on disk."""

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)

    def _resolve(self, path: str) -> Path:
        return self.base_dir / PurePosixPath(path)

    def read(self, path: str) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(f"File not found: {target}")
        return target.read_text(encoding="utf-8")

    def write(self, path: str, content: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def list_tree(self, root: str = "") -> List[str]:
        start = self._resolve(root) if root else self.base_dir
        if not start.is_dir():
            return []
        return sorted(
            p.relative_to(self.base_dir).as_posix()
            for p in start.rglob("*")
            if p.is_file()
        )


class InMemoryFileStore:
    """FileStore backed by a dict, for tests and embedding."""

    def __init__(self, files: Optional[Dict[str, str]] = None):
        self.files: Dict[str, str] = dict(files or {})

    def read(self, path: str) -> str:
        if path not in self.files:
            raise FileNotFoundError(f"File not found: {path}")
        return self.files[path]

    def write(self, path: str, content: str) -> None:
        self.files[path] = content

    def exists(self, path: str) -> bool:
        return path in self.files

    def list_tree(self, root: str = "") -> List[str]:
        prefix = root.rstrip("/") + "/" if root else ""
        return sorted(p for p in self.files if p.startswith(prefix))
