"""Archive unpacking with root-folder normalization."""

from __future__ import annotations

import os
import posixpath
import re
import shutil
import tarfile
import zipfile
from pathlib import Path
from typing import List, Optional

from .console import log, log_debug
from .errors import ExtractionError

_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:")


def archive_kind(archive: Path) -> str:
    name = archive.name.lower()
    if name.endswith(".zip"):
        return "zip"
    if any(name.endswith(ext) for ext in (".tar.gz", ".tgz", ".tar")):
        return "tar"
    raise ExtractionError(f"unsupported archive format for {archive.name}")


def _normalize_member_path(member: str, archive_name: str) -> str:
    normalized = (member or "").replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    if not normalized:
        return ""
    if normalized.startswith("/") or _DRIVE_PATTERN.match(normalized):
        raise ExtractionError(
            f"archive entry contains an absolute path: {member!r} ({archive_name})"
        )
    parts = [part for part in normalized.split("/") if part not in {"", "."}]
    if any(part == ".." for part in parts):
        raise ExtractionError(
            f"archive entry attempts path traversal: {member!r} ({archive_name})"
        )
    return "/".join(parts)


def _strip_root(entry: str, root: str) -> Optional[str]:
    if not root:
        return entry
    if entry == root:
        return ""
    if entry.startswith(f"{root}/"):
        return entry[len(root) + 1 :]
    return None


def list_archive_entries(archive: Path) -> List[str]:
    kind = archive_kind(archive)
    try:
        if kind == "zip":
            with zipfile.ZipFile(archive) as zf:
                raw = [info.filename for info in zf.infolist()]
        else:
            with tarfile.open(archive, mode="r:*") as tf:
                raw = tf.getnames()
    except (zipfile.BadZipFile, tarfile.TarError, OSError) as exc:
        raise ExtractionError(f"can't read archive {archive.name}: {exc}") from exc
    entries = [_normalize_member_path(name, archive.name) for name in raw]
    return [entry for entry in entries if entry]


def find_archive_root(archive: Path) -> str:
    """Return the single top-level folder wrapping the archive, or ``""``."""
    entries = list_archive_entries(archive)
    tops = {entry.split("/", 1)[0] for entry in entries}
    if len(tops) != 1:
        return ""
    root = next(iter(tops))
    if not any("/" in entry for entry in entries):
        return ""
    return root


class _Extractor:
    def __init__(self, archive: Path, dest: Path) -> None:
        self.archive = archive
        self.dest = dest
        self.dest_real = dest.resolve()
        self.count = 0

    def fail(self, message: str) -> ExtractionError:
        return ExtractionError(f"{message} ({self.archive.name})")

    def ensure_dirs(self, parts: List[str]) -> Path:
        current = self.dest
        for part in parts:
            current = current / part
            if current.is_symlink():
                raise self.fail(f"refusing to extract into symlinked directory {current}")
            if current.exists():
                if not current.is_dir():
                    raise self.fail(f"refusing to extract into non-directory {current}")
                continue
            current.mkdir()
        return current

    def target_for(self, relative: str) -> Path:
        target = self.dest.joinpath(*relative.split("/"))
        target_real = self.dest_real.joinpath(*relative.split("/"))
        if self.dest_real != target_real and self.dest_real not in target_real.parents:
            raise self.fail(f"archive entry escapes destination: {relative!r}")
        if target.is_symlink():
            raise self.fail(f"refusing to overwrite symlink {target}")
        return target

    def write(self, relative: str, source, mode: int) -> None:
        parts = relative.split("/")
        self.ensure_dirs(parts[:-1])
        target = self.target_for(relative)
        with target.open("wb") as out:
            shutil.copyfileobj(source, out)
        if mode:
            try:
                os.chmod(target, mode & 0o777)
            except OSError:
                pass
        self.count += 1

    def symlink(self, relative: str, linkname: str) -> None:
        link = (linkname or "").replace("\\", "/").strip()
        if not link:
            return
        if link.startswith("/") or _DRIVE_PATTERN.match(link):
            raise self.fail(f"refusing to extract absolute symlink target {link!r}")
        combined = posixpath.normpath(posixpath.join(posixpath.dirname(relative), link))
        if combined == ".." or combined.startswith("../"):
            raise self.fail(f"refusing to extract symlink escaping destination: {relative!r} -> {link!r}")
        parts = relative.split("/")
        self.ensure_dirs(parts[:-1])
        target = self.dest.joinpath(*parts)
        if target.is_symlink() or target.exists():
            target.unlink()
        try:
            os.symlink(link, target)
        except (NotImplementedError, OSError) as exc:
            raise self.fail(f"failed to create symlink for {relative!r}: {exc}") from exc
        self.count += 1

    def hardlink(self, relative: str, source_relative: str) -> None:
        source = self.target_for(source_relative)
        if not source.exists():
            raise self.fail(f"hardlink target missing while extracting {relative!r}")
        parts = relative.split("/")
        self.ensure_dirs(parts[:-1])
        target = self.target_for(relative)
        if target.exists():
            target.unlink()
        try:
            os.link(source, target)
        except OSError as exc:
            raise self.fail(f"failed to create hardlink for {relative!r}: {exc}") from exc
        self.count += 1


def _extract_zip(extractor: _Extractor, root: str) -> None:
    archive = extractor.archive
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            entry = _normalize_member_path(info.filename, archive.name)
            relative = _strip_root(entry, root) if entry else None
            if not relative:
                continue
            if info.is_dir():
                extractor.ensure_dirs(relative.split("/"))
                continue
            with zf.open(info, "r") as src:
                extractor.write(relative, src, (info.external_attr >> 16) & 0o777)


def _extract_tar(extractor: _Extractor, root: str) -> None:
    archive = extractor.archive
    with tarfile.open(archive, mode="r:*") as tf:
        for member in tf.getmembers():
            entry = _normalize_member_path(member.name, archive.name)
            relative = _strip_root(entry, root) if entry else None
            if not relative:
                continue
            if member.isdir():
                extractor.ensure_dirs(relative.split("/"))
                continue
            if member.issym():
                extractor.symlink(relative, member.linkname)
                continue
            if member.islnk():
                linked = _normalize_member_path(member.linkname, archive.name)
                source_relative = _strip_root(linked, root) if linked else None
                if not source_relative:
                    raise extractor.fail(
                        f"refusing to extract hardlink outside of '{root}': {relative!r} -> {member.linkname!r}"
                    )
                extractor.hardlink(relative, source_relative)
                continue
            if not member.isreg():
                raise extractor.fail(f"unsupported archive entry type for {relative!r}")
            file_obj = tf.extractfile(member)
            if file_obj is None:
                continue
            with file_obj as src:
                extractor.write(relative, src, member.mode)


def unpack_archive(archive: Path, dest: Path, root_name: Optional[str] = None) -> int:
    """
    Extract ``archive`` into ``dest`` with the wrapping root folder stripped.

    ``root_name`` overrides root detection. ``dest`` is deleted first when it
    exists. Returns the number of files written; zero is an error.
    """
    kind = archive_kind(archive)
    root = find_archive_root(archive) if root_name is None else root_name.strip("/")
    log_debug(f"root archive folder: {root!r}")

    if dest.is_symlink() or dest.is_file():
        dest.unlink()
    elif dest.is_dir():
        log(f"detected existing target folder, deleting it: {dest.name}")
        shutil.rmtree(dest)
    dest.mkdir(parents=True)

    extractor = _Extractor(archive, dest)
    log("unpacking archive...")
    try:
        if kind == "zip":
            _extract_zip(extractor, root)
        else:
            _extract_tar(extractor, root)
    except zipfile.BadZipFile as exc:
        raise ExtractionError(f"corrupt zip archive {archive.name}: {exc}") from exc
    except tarfile.TarError as exc:
        raise ExtractionError(f"corrupt tar archive {archive.name}: {exc}") from exc
    except OSError as exc:
        raise ExtractionError(f"failed to unpack {archive.name}: {exc}") from exc

    if extractor.count == 0:
        raise ExtractionError(
            f"extracted 0 files from archive {archive.name}; the root folder name may be wrong: {root!r}"
        )
    log(f"archive has been unpacked successfully, extracted {extractor.count} files")
    return extractor.count
