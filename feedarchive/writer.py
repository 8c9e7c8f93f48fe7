"""Persist rendered archive pages under ``{output_root}/{YYYY}/{YYYY-MM}.html``."""

from __future__ import annotations

import errno
import os
import pathlib
import re
import tempfile
from typing import Iterable

from .errors import FilesystemError
from .models import RenderedPage

__all__ = ["ArchiveWriter", "describe_os_error"]

_PAGE_NAME = re.compile(r"^(\d{4})-(\d{2})\.html$")


def describe_os_error(exc: OSError, path: pathlib.Path | str) -> str:
    code = getattr(exc, "errno", None)
    if code in (errno.EACCES, errno.EPERM):
        return f"Permission denied: {path}"
    if code == errno.ENOSPC:
        return f"No space left on device while writing {path}"
    if code == errno.ENOTDIR:
        return f"A component of the path is not a directory: {path}"
    if code == errno.ENOENT:
        return f"Parent directory does not exist: {path}"
    if code == errno.EISDIR:
        return f"Path is a directory: {path}"
    return f"Failed to access {path}: {exc}"


def _atomic_write(path: pathlib.Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class ArchiveWriter:
    """Read and write archive pages relative to ``output_root``.

    ``write_pages`` is all-or-nothing for a batch: if any page fails, files
    created by the batch are removed and files it overwrote get their previous
    content back before the error is re-raised as :class:`FilesystemError`.
    """

    def __init__(self, output_root: pathlib.Path | str) -> None:
        self.output_root = pathlib.Path(output_root)
        self.written: list[pathlib.Path] = []
        self.created: list[pathlib.Path] = []
        self.updated: list[pathlib.Path] = []
        self.total_bytes = 0

    def path_for(self, relative_path: str) -> pathlib.Path:
        return self.output_root / relative_path

    def ensure_output_root(self) -> pathlib.Path:
        try:
            self.output_root.mkdir(parents=True, exist_ok=True)
        except FileExistsError as exc:
            raise FilesystemError(f"Output path exists and is not a directory: {self.output_root}") from exc
        except OSError as exc:
            raise FilesystemError(describe_os_error(exc, self.output_root)) from exc
        if not self.output_root.is_dir():
            raise FilesystemError(f"Output path exists and is not a directory: {self.output_root}")
        return self.output_root

    def read_page(self, relative_path: str) -> str | None:
        path = self.path_for(relative_path)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as exc:
            raise FilesystemError(f"Existing page is not valid UTF-8: {path}") from exc
        except OSError as exc:
            raise FilesystemError(describe_os_error(exc, path)) from exc

    def existing_keys(self) -> list[str]:
        """Month keys of every page already under the output root, ascending."""

        if not self.output_root.is_dir():
            return []

        keys: list[str] = []
        for year_dir in self.output_root.iterdir():
            if not year_dir.is_dir() or not re.fullmatch(r"\d{4}", year_dir.name):
                continue
            for page in year_dir.iterdir():
                match = _PAGE_NAME.match(page.name)
                if match and match.group(1) == year_dir.name and page.is_file():
                    keys.append(f"{match.group(1)}-{match.group(2)}")
        return sorted(keys)

    def write_pages(self, pages: Iterable[RenderedPage]) -> list[pathlib.Path]:
        batch: list[tuple[pathlib.Path, str | None]] = []
        batch_bytes = 0
        try:
            for page in pages:
                path = self.path_for(page.relative_path)
                previous = self.read_page(page.relative_path)
                batch.append((path, previous))
                _atomic_write(path, page.html)
                batch_bytes += page.size
        except (OSError, FilesystemError) as exc:
            self._rollback(batch)
            if isinstance(exc, FilesystemError):
                raise
            raise FilesystemError(describe_os_error(exc, batch[-1][0] if batch else self.output_root)) from exc

        paths = [path for path, _ in batch]
        for path, previous in batch:
            (self.created if previous is None else self.updated).append(path)
        self.written.extend(paths)
        self.total_bytes += batch_bytes
        return paths

    def rewrite_page(self, relative_path: str, html: str) -> pathlib.Path:
        path = self.path_for(relative_path)
        try:
            _atomic_write(path, html)
        except OSError as exc:
            raise FilesystemError(describe_os_error(exc, path)) from exc
        self.written.append(path)
        self.total_bytes += len(html.encode("utf-8"))
        return path

    def _rollback(self, batch: list[tuple[pathlib.Path, str | None]]) -> None:
        for path, previous in reversed(batch):
            try:
                if previous is None:
                    path.unlink()
                else:
                    _atomic_write(path, previous)
            except FileNotFoundError:
                continue
            except OSError:
                # Best effort: the original error is what gets reported.
                continue
