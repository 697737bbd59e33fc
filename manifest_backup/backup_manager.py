"""Core backup pass: copy every path listed in a manifest into the backup folder."""

import logging
import os
import shutil
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


class EntryKind(Enum):
    """Classification of a manifest line at processing time."""

    DIRECTORY = "directory"
    FILE = "file"
    INVALID = "invalid"

    @property
    def is_valid(self) -> bool:
        return self is not EntryKind.INVALID


class EntryResult:
    """Outcome for one non-blank manifest line."""

    def __init__(
        self,
        path: str,
        kind: EntryKind,
        line_number: int,
        copied: bool = False,
        error_message: str = "",
    ):
        self.path = path
        self.kind = kind
        self.line_number = line_number
        self.copied = copied
        self.error_message = error_message

    @property
    def failed(self) -> bool:
        """A valid entry whose copy did not complete."""
        return self.kind.is_valid and not self.copied

    def __repr__(self) -> str:
        return (
            f"EntryResult(path={self.path!r}, kind={self.kind.value}, "
            f"copied={self.copied}, error={self.error_message!r})"
        )


class RunResult:
    """Aggregate result of one pass over a manifest."""

    def __init__(
        self,
        destination: Path,
        manifest_path: Path,
        entries: Optional[List[EntryResult]] = None,
        succeeded: bool = True,
        manifest_cleared: bool = False,
        execution_time: float = 0.0,
    ):
        self.destination = destination
        self.manifest_path = manifest_path
        self.entries = entries or []
        self.succeeded = succeeded
        self.manifest_cleared = manifest_cleared
        self.execution_time = execution_time

    @property
    def outcome(self) -> str:
        return "succeeded" if self.succeeded else "failed"

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    @property
    def copied_count(self) -> int:
        """Number of entries copied to the destination."""
        return sum(1 for e in self.entries if e.copied)

    @property
    def invalid_count(self) -> int:
        """Number of entries skipped because they do not exist."""
        return sum(1 for e in self.entries if e.kind is EntryKind.INVALID)

    @property
    def failed_count(self) -> int:
        """Number of valid entries whose copy failed."""
        return sum(1 for e in self.entries if e.failed)


def display_path(path: str) -> str:
    """Printable form of a path that may carry undecodable bytes."""
    return path.encode("utf-8", "surrogateescape").decode("utf-8", "backslashreplace")


def read_manifest(manifest_path: Path) -> List[Tuple[int, str]]:
    """
    Read the manifest and return its non-blank entries.

    Bytes that are not valid UTF-8 are kept as surrogate escapes, so paths with
    such names still resolve to the files on disk.

    Args:
        manifest_path: Path of the manifest file

    Returns:
        List of (line_number, trimmed_path) tuples in file order
    """
    text = Path(manifest_path).read_text(encoding="utf-8", errors="surrogateescape")
    entries = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if stripped:
            entries.append((line_number, stripped))
    return entries


def classify_entry(path: str) -> EntryKind:
    """Classify a manifest path as an existing directory, regular file, or invalid."""
    candidate = Path(path)
    if candidate.is_dir():
        return EntryKind.DIRECTORY
    if candidate.is_file():
        return EntryKind.FILE
    return EntryKind.INVALID


def clear_manifest(manifest_path: Path) -> None:
    """Truncate the manifest so the next pass has nothing left to copy."""
    with open(manifest_path, "w", encoding="utf-8"):
        pass


def remove_replaced_links(source: Path, target: Path) -> None:
    """Unlink entries under ``target`` that a merge copy recreates as symlinks."""
    if not target.is_dir():
        return
    for root, dirs, files in os.walk(source):
        for name in dirs + files:
            source_entry = Path(root) / name
            if not source_entry.is_symlink():
                continue
            existing = target / source_entry.relative_to(source)
            if existing.is_symlink() or existing.is_file():
                existing.unlink()


class ManifestProcessor:
    """Executes backup passes over a manifest of paths."""

    def __init__(self):
        self.logger = logger

    def copy_entry(self, source: str, kind: EntryKind, destination: Path) -> Tuple[bool, str]:
        """
        Copy one source path into the destination, keeping its base name.

        Files overwrite an existing file of the same name; directories are
        merged into an existing directory of the same name.

        Returns:
            Tuple of (success, error_message)
        """
        source_path = Path(source)
        target = destination / source_path.name

        try:
            if not destination.is_dir():
                raise FileNotFoundError(f"destination '{destination}' is not a directory")

            if kind is EntryKind.DIRECTORY:
                if destination.resolve().is_relative_to(source_path.resolve()):
                    raise OSError(f"backup folder '{destination}' is inside '{source}'")
                remove_replaced_links(source_path, target)
                shutil.copytree(source_path, target, symlinks=True, dirs_exist_ok=True)
            else:
                shutil.copy2(source_path, target)
            return True, ""

        except OSError as e:
            error_msg = f"Copy of {display_path(source)} to {destination} failed: {e}"
            self.logger.error(error_msg)
            return False, error_msg

    def run(self, destination: Path, manifest_path: Path) -> RunResult:
        """
        Run one backup pass.

        Every non-blank line is classified and, when it names an existing file
        or directory, copied into ``destination``. Missing paths are logged and
        skipped. The manifest is cleared only when every valid entry copied.

        Args:
            destination: Backup folder
            manifest_path: Manifest listing the paths to copy

        Returns:
            RunResult with per-entry outcomes
        """
        start_time = datetime.now()
        destination = Path(destination)
        manifest_path = Path(manifest_path)

        if not destination.is_dir():
            self.logger.error(
                f"Backup folder '{destination}' does not exist. Copies will fail."
            )

        entries = read_manifest(manifest_path)
        self.logger.info(f"Processing {len(entries)} manifest entries from {manifest_path}")

        result = RunResult(destination, manifest_path)

        for line_number, path in entries:
            kind = classify_entry(path)
            entry = EntryResult(path, kind, line_number)

            if kind.is_valid:
                self.logger.info(f"Copying {display_path(path)} to {destination}")
                entry.copied, entry.error_message = self.copy_entry(path, kind, destination)
                if not entry.copied:
                    result.succeeded = False
            else:
                self.logger.warning(f"{display_path(path)} does not exist or is invalid. Skipping.")

            result.entries.append(entry)

        if result.succeeded:
            self.logger.info("All files copied successfully. Clearing input file.")
            clear_manifest(manifest_path)
            result.manifest_cleared = True
        else:
            self.logger.error(
                f"Error occurred during file copying ({result.failed_count} failed). "
                "Input file not cleared."
            )

        result.execution_time = (datetime.now() - start_time).total_seconds()
        self.logger.info(
            f"Backup pass {result.outcome}: {result.copied_count} copied, "
            f"{result.invalid_count} skipped, {result.failed_count} failed "
            f"in {result.execution_time:.2f}s"
        )
        return result
