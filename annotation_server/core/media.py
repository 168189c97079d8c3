"""Uploaded image storage and path resolution."""

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, Optional

from PIL import Image, ImageFilter, UnidentifiedImageError

from ..utils.hashing import hash_file
from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class StoredMedia:
    """Result of storing one upload."""

    file_name: str
    file_path: str  # relative to the uploads root
    lqip_path: Optional[str]
    width: int
    height: int


class MediaStore:
    """Store uploaded images under ``<uploads_dir>/<project_id>/``.

    Files are named by content hash, so re-uploading the same bytes into a
    project reuses the stored file. Paths kept in documents are relative to
    the uploads root and resolved back here.
    """

    def __init__(
        self,
        uploads_dir: Path,
        allowed_extensions: Iterable[str] = (".jpg", ".jpeg", ".png"),
        lqip_width: int = 20,
        lqip_blur_radius: float = 2.0,
    ):
        """Initialize media store.

        Args:
            uploads_dir: Root directory for uploaded files
            allowed_extensions: Accepted lowercase extensions
            lqip_width: Width of the low-quality placeholder
            lqip_blur_radius: Gaussian blur radius of the placeholder
        """
        self.uploads_dir = Path(uploads_dir)
        self.allowed_extensions = {ext.lower() for ext in allowed_extensions}
        self.lqip_width = lqip_width
        self.lqip_blur_radius = lqip_blur_radius
        self.uploads_dir.mkdir(parents=True, exist_ok=True)

    def save_upload(self, project_id: str, file_name: str, stream: BinaryIO) -> StoredMedia:
        """Persist an uploaded image and its placeholder.

        Args:
            project_id: Owning project
            file_name: Client-side file name
            stream: Readable binary stream

        Returns:
            StoredMedia: Stored paths and pixel dimensions

        Raises:
            ValidationError: Unsupported extension or unreadable image
        """
        suffix = Path(file_name).suffix.lower()
        if suffix not in self.allowed_extensions:
            raise ValidationError(f"Unsupported file type: {file_name}")

        project_dir = self.uploads_dir / project_id
        project_dir.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(dir=project_dir, suffix=suffix, delete=False) as tmp:
            shutil.copyfileobj(stream, tmp)
            tmp_path = Path(tmp.name)

        try:
            with Image.open(tmp_path) as img:
                img.load()
                width, height = img.size
                stem = hash_file(tmp_path)[:16]
                lqip_rel = self._write_lqip(img, project_id, stem)
        except (UnidentifiedImageError, OSError) as e:
            tmp_path.unlink(missing_ok=True)
            raise ValidationError(f"Not a readable image: {file_name} ({e})")

        dest = project_dir / f"{stem}{suffix}"
        if dest.exists():
            tmp_path.unlink()
        else:
            tmp_path.replace(dest)

        logger.info(f"Stored upload {file_name} as {dest.name} ({width}x{height})")
        return StoredMedia(
            file_name=file_name,
            file_path=self._relative(dest),
            lqip_path=lqip_rel,
            width=width,
            height=height,
        )

    def resolve(self, relative_path: Optional[str]) -> Optional[Path]:
        """Resolve a stored relative path to a file under the uploads root.

        Returns:
            Path: Absolute path, or None if missing or outside the root
        """
        if not relative_path:
            return None

        root = self.uploads_dir.resolve()
        path = (root / relative_path).resolve()
        if root not in path.parents:
            logger.warning(f"Rejected path outside uploads root: {relative_path}")
            return None

        return path if self.validate_path(path) else None

    def validate_path(self, path: Path) -> bool:
        """Validate that path exists and is a file."""
        return path is not None and path.exists() and path.is_file()

    def delete(self, relative_path: Optional[str]) -> bool:
        """Remove a stored file if it exists."""
        path = self.resolve(relative_path)
        if path is None:
            return False
        path.unlink()
        return True

    def delete_project(self, project_id: str) -> None:
        """Remove every stored file of a project."""
        project_dir = self.uploads_dir / project_id
        if project_dir.exists():
            shutil.rmtree(project_dir)

    def _write_lqip(self, img: Image.Image, project_id: str, stem: str) -> Optional[str]:
        """Render a tiny blurred JPEG preview next to the original."""
        lqip_path = self.uploads_dir / project_id / f"{stem}_lqip.jpg"
        if lqip_path.exists():
            return self._relative(lqip_path)

        width, height = img.size
        if width == 0 or height == 0:
            return None

        target_w = min(self.lqip_width, width)
        target_h = max(1, round(height * target_w / width))
        preview = img.convert("RGB").resize((target_w, target_h))
        preview = preview.filter(ImageFilter.GaussianBlur(self.lqip_blur_radius))
        preview.save(lqip_path, format="JPEG", quality=40)
        return self._relative(lqip_path)

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.uploads_dir).as_posix()
