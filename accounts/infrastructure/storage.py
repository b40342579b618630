"""Local disk storage for profile pictures, served under ``/uploads``."""

import os
import uuid
from datetime import date
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import structlog
from fastapi import UploadFile

from accounts.core.exceptions import ValidationException

logger = structlog.get_logger(__name__)

PUBLIC_PREFIX = "uploads"


class LocalImageStorage:
    def __init__(self, root: str, allowed_extensions: set[str], max_bytes: int):
        self.root = Path(root)
        self.allowed_extensions = allowed_extensions
        self.max_bytes = max_bytes

    def _invalid(self) -> ValidationException:
        return ValidationException(
            "error.invalidFile",
            params={
                "extensions": ", ".join(sorted(self.allowed_extensions)),
                "max_mb": self.max_bytes // (1024 * 1024),
            },
        )

    def save(self, file: UploadFile, base_url: str) -> str:
        """Persist an uploaded image under ``root/YYYY/M/D`` and return its public URL."""
        filename = file.filename or ""
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if ext not in self.allowed_extensions:
            raise self._invalid()

        content = file.file.read(self.max_bytes + 1)
        if len(content) > self.max_bytes:
            raise self._invalid()

        today = date.today()
        relative_dir = Path(str(today.year), str(today.month), str(today.day))
        os.makedirs(self.root / relative_dir, exist_ok=True)
        relative_path = relative_dir / f"{uuid.uuid4().hex}.{ext}"

        with open(self.root / relative_path, "wb") as f:
            f.write(content)

        return f"{base_url.rstrip('/')}/{PUBLIC_PREFIX}/{relative_path.as_posix()}"

    def delete(self, url: Optional[str]) -> bool:
        """Remove a previously saved image by its public URL."""
        if not url:
            return False
        path = urlparse(url).path.lstrip("/")
        if not path.startswith(f"{PUBLIC_PREFIX}/"):
            return False
        local_path = (self.root / path[len(PUBLIC_PREFIX) + 1:]).resolve()
        if self.root.resolve() not in local_path.parents:
            return False
        try:
            local_path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Could not delete uploaded file", path=str(local_path), error=str(e))
            return False
