"""Private temporary directory owned by a single verification run."""

import shutil
import tempfile
import time
from pathlib import Path


class Workspace:
    """
    Context manager around a fresh directory (prefix "ksverify-").
    Everything created through new_path() is removed on exit, success or failure.
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self.base_dir = base_dir
        self.path: Path | None = None

    def __enter__(self) -> "Workspace":
        # mkdtemp creates the directory with 0o700
        self.path = Path(tempfile.mkdtemp(prefix="ksverify-", dir=self.base_dir))
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self.path is not None:
            shutil.rmtree(self.path, ignore_errors=True)
            self.path = None

    def new_path(self, stem: str, suffix: str = "") -> Path:
        """Unique path inside the workspace that does not exist yet."""
        if self.path is None:
            raise RuntimeError("Workspace is not open")
        while True:
            candidate = self.path / f"{stem}-{time.time_ns()}{suffix}"
            if not candidate.exists():
                return candidate
