from __future__ import annotations

import logging
import os
import shutil
import threading
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, Optional, Union
from uuid import uuid4

from domain import BLUE_GREEN_SLOTS, Environment, StorageError
from models import utc_now


logger = logging.getLogger("ledger.storage")

ContentSet = Dict[str, bytes]


def load_content_directory(source: Union[Path, str]) -> ContentSet:
    """Read every file below ``source`` into a content set keyed by relative path."""
    root = Path(source)
    if not root.is_dir():
        raise StorageError(f"content directory missing: {root}")
    try:
        return {
            path.relative_to(root).as_posix(): path.read_bytes()
            for path in sorted(root.rglob("*"))
            if path.is_file()
        }
    except OSError as exc:
        raise StorageError(f"failed to read content from {root}: {exc}") from exc


def _safe_relative(name: str) -> PurePosixPath:
    relative = PurePosixPath(name)
    if not name or relative.is_absolute() or ".." in relative.parts:
        raise StorageError(f"refusing to write outside the environment: {name!r}")
    return relative


class FilesystemContentStore:
    """Environments are directories; backups are timestamped directory copies.

    ``write`` stages the new content next to the target and swaps it in with
    renames. The blue/green alias is a symlink replaced with ``os.replace`` so
    readers never observe a missing or half-written link.
    """

    def __init__(
        self,
        environment_paths: Dict[Environment, Path],
        backup_root: Path,
        live_symlink: Path,
        *,
        clock: Callable = utc_now,
    ):
        missing = [env.value for env in Environment if env not in environment_paths]
        if missing:
            raise ValueError(f"no storage location configured for: {', '.join(missing)}")
        self.environment_paths = {env: Path(path) for env, path in environment_paths.items()}
        self.backup_root = Path(backup_root)
        self.live_symlink = Path(live_symlink)
        self._clock = clock

    def locate(self, environment: Environment) -> str:
        return str(self.environment_paths[environment])

    def has_content(self, environment: Environment) -> bool:
        return self.environment_paths[environment].exists()

    def read(self, environment: Environment) -> Optional[ContentSet]:
        target = self.environment_paths[environment]
        if not target.exists():
            return None
        return load_content_directory(target)

    def write(self, environment: Environment, content: ContentSet) -> None:
        for name in content:
            _safe_relative(name)
        target = self.environment_paths[environment]
        staging = target.with_name(f".{target.name}.staging-{uuid4().hex[:8]}")
        retired = target.with_name(f".{target.name}.retired-{uuid4().hex[:8]}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._materialize(staging, content)
            if target.exists():
                target.rename(retired)
            staging.rename(target)
            if retired.exists():
                shutil.rmtree(retired)
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            if retired.exists() and not target.exists():
                retired.rename(target)
            raise StorageError(f"failed to write {environment.value} at {target}: {exc}") from exc

    def clear(self, environment: Environment) -> None:
        target = self.environment_paths[environment]
        try:
            if target.exists():
                shutil.rmtree(target)
        except OSError as exc:
            raise StorageError(f"failed to clear {environment.value}: {exc}") from exc

    def snapshot(self, environment: Environment) -> str:
        source = self.environment_paths[environment]
        if not source.exists():
            raise StorageError(f"nothing to snapshot for {environment.value} at {source}")
        stamp = self._clock().strftime("%Y%m%dT%H%M%S%fZ")
        destination = self.backup_root / environment.value / f"{stamp}-{uuid4().hex[:8]}"
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, destination)
        except OSError as exc:
            raise StorageError(f"failed to back up {environment.value}: {exc}") from exc
        logger.info("Snapshot of %s stored at %s", environment.value, destination)
        return str(destination)

    def restore(self, content_ref: str) -> ContentSet:
        return load_content_directory(content_ref)

    def discard(self, content_ref: str) -> None:
        path = Path(content_ref)
        try:
            if path.exists():
                shutil.rmtree(path)
        except OSError as exc:
            raise StorageError(f"failed to discard backup {content_ref}: {exc}") from exc

    def get_alias(self) -> Optional[Environment]:
        symlink = self.live_symlink
        if not symlink.is_symlink():
            return None
        target = Path(os.readlink(symlink))
        if not target.is_absolute():
            target = symlink.parent / target
        normalized = target.resolve(strict=False)
        for slot in BLUE_GREEN_SLOTS:
            if normalized == self.environment_paths[slot].resolve(strict=False):
                return slot
        return None

    def set_alias(self, slot: Environment) -> None:
        if slot not in BLUE_GREEN_SLOTS:
            raise ValueError(f"{slot.value} is not a blue/green slot")
        target = self.environment_paths[slot]
        temporary = self.live_symlink.with_name(f".{self.live_symlink.name}.{uuid4().hex[:8]}")
        try:
            self.live_symlink.parent.mkdir(parents=True, exist_ok=True)
            temporary.symlink_to(target.resolve(strict=False), target_is_directory=True)
            os.replace(temporary, self.live_symlink)
        except OSError as exc:
            if temporary.is_symlink():
                temporary.unlink()
            raise StorageError(f"failed to switch live alias to {slot.value}: {exc}") from exc

    @staticmethod
    def _materialize(directory: Path, content: ContentSet) -> None:
        directory.mkdir(parents=True)
        for name, data in content.items():
            destination = directory / _safe_relative(name)
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)


class InMemoryContentStore:
    """Content store kept in dictionaries; used by tests and STORAGE_BACKEND=memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: Dict[Environment, ContentSet] = {}
        self._snapshots: Dict[str, ContentSet] = {}
        self._alias: Optional[Environment] = None

    def locate(self, environment: Environment) -> str:
        return f"memory://{environment.value}"

    def has_content(self, environment: Environment) -> bool:
        with self._lock:
            return environment in self._active

    def read(self, environment: Environment) -> Optional[ContentSet]:
        with self._lock:
            content = self._active.get(environment)
            return dict(content) if content is not None else None

    def write(self, environment: Environment, content: ContentSet) -> None:
        for name in content:
            _safe_relative(name)
        with self._lock:
            self._active[environment] = dict(content)

    def clear(self, environment: Environment) -> None:
        with self._lock:
            self._active.pop(environment, None)

    def snapshot(self, environment: Environment) -> str:
        with self._lock:
            if environment not in self._active:
                raise StorageError(f"nothing to snapshot for {environment.value}")
            content_ref = f"memory://backups/{environment.value}/{uuid4().hex}"
            self._snapshots[content_ref] = dict(self._active[environment])
        return content_ref

    def restore(self, content_ref: str) -> ContentSet:
        with self._lock:
            if content_ref not in self._snapshots:
                raise StorageError(f"backup not found: {content_ref}")
            return dict(self._snapshots[content_ref])

    def discard(self, content_ref: str) -> None:
        with self._lock:
            self._snapshots.pop(content_ref, None)

    def has_snapshot(self, content_ref: str) -> bool:
        with self._lock:
            return content_ref in self._snapshots

    def get_alias(self) -> Optional[Environment]:
        return self._alias

    def set_alias(self, slot: Environment) -> None:
        if slot not in BLUE_GREEN_SLOTS:
            raise ValueError(f"{slot.value} is not a blue/green slot")
        self._alias = slot


ContentStore = Union[FilesystemContentStore, InMemoryContentStore]
