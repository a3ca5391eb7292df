"""
Bundled Plugin Resources.

This module gives plugins read-only access to the files shipped under the
`resources/` directory of their package.

Key features:
- Uniform resolution for directory plugins and zip archive plugins
- Scoped resource handles that always release their stream and archive
- Copying resources into a destination folder without clobbering user files
- Lazy, restartable recursive listing
"""

import shutil
import zipfile
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import BinaryIO

from loguru import logger

RESOURCES_DIR = "resources"


def normalize_resource_path(name: str) -> str:
    """
    Normalize a logical resource path.

    Backslashes become forward slashes and trailing separators are dropped,
    so "lang\\en.toml" and "lang/en.toml/" both resolve to "lang/en.toml".
    """
    return name.replace("\\", "/").rstrip("/")


def split_resource_path(name: str) -> tuple[str, ...] | None:
    """
    Split a logical resource path into its segments.

    Empty and "." segments are dropped.

    Returns:
        Tuple of segments, or None if the path is blank or climbs out of
        its root with ".."
    """
    segments = tuple(s for s in normalize_resource_path(name).split("/") if s not in ("", "."))
    if not segments or ".." in segments:
        return None
    return segments


def is_archive(path: Path) -> bool:
    """True when a package location is a zip archive rather than a directory."""
    path = Path(path)
    return path.is_file() and zipfile.is_zipfile(path)


@contextmanager
def open_package(path: Path) -> Iterator[Traversable]:
    """
    Open a plugin package location as a Traversable.

    Archives are opened for the duration of the `with` block only.

    Args:
        path: Plugin directory or zip archive

    Yields:
        zipfile.Path for archives, the Path itself for directories
    """
    path = Path(path)
    if is_archive(path):
        with zipfile.ZipFile(path) as archive:
            yield zipfile.Path(archive)
    else:
        yield path


def join_segments(root: Traversable, segments: tuple[str, ...]) -> Traversable:
    entry = root
    for segment in segments:
        entry = entry / segment
    return entry


class ResourceHandle:
    """
    Scoped acquisition of one bundled resource.

    The byte stream (and the archive, for zip packages) is opened on entering
    the `with` block and closed when the block exits, whatever the exit path.

    Example:
        handle = store.open("config.toml")
        if handle is not None:
            with handle as stream:
                data = stream.read()
    """

    def __init__(self, package: Path, segments: tuple[str, ...]):
        self.name = "/".join(segments)
        self._package = package
        self._segments = (RESOURCES_DIR, *segments)
        self._stack: ExitStack | None = None

    def __enter__(self) -> BinaryIO:
        if self._stack is not None:
            raise RuntimeError(f"Resource {self.name} is already open")
        with ExitStack() as stack:
            root = stack.enter_context(open_package(self._package))
            stream = stack.enter_context(join_segments(root, self._segments).open("rb"))
            self._stack = stack.pop_all()
        return stream

    def __exit__(self, exc_type, exc, tb) -> None:
        stack, self._stack = self._stack, None
        if stack is not None:
            stack.close()

    def read_bytes(self) -> bytes:
        with self as stream:
            return stream.read()

    def __repr__(self) -> str:
        return f"ResourceHandle({self.name!r})"


class ResourceListing:
    """
    Recursive listing of logical resource paths.

    Each iteration walks the resources tree afresh, so the listing can be
    iterated any number of times. Entries within one directory are yielded
    in sorted order. For archives, the archive stays open only while an
    iteration is in progress.
    """

    def __init__(self, package: Path):
        self._package = package

    def __iter__(self) -> Iterator[str]:
        with open_package(self._package) as root:
            resources = root / RESOURCES_DIR
            if resources.is_dir():
                yield from self._walk(resources, "")

    def _walk(self, node: Traversable, prefix: str) -> Iterator[str]:
        for child in sorted(node.iterdir(), key=lambda c: c.name):
            logical = f"{prefix}{child.name}"
            if child.is_dir():
                yield from self._walk(child, f"{logical}/")
            elif child.is_file():
                yield logical


class ResourceStore:
    """
    Read-only view of a plugin package's `resources/` directory.

    The store only remembers the package location. Every operation opens
    the package (and archive, if any) for as long as it needs it.
    """

    def __init__(self, package: Path):
        """
        Initialize ResourceStore.

        Args:
            package: Plugin package location (directory or zip archive)
        """
        self.package = Path(package)

    @classmethod
    def for_package(cls, path: Path) -> "ResourceStore":
        return cls(path)

    @property
    def is_archive(self) -> bool:
        return is_archive(self.package)

    def _resolve(self, name: str) -> tuple[str, ...] | None:
        segments = split_resource_path(name)
        if segments is None:
            return None
        with open_package(self.package) as root:
            entry = join_segments(root / RESOURCES_DIR, segments)
            if not entry.is_file():
                return None
        return segments

    def open(self, name: str) -> ResourceHandle | None:
        """
        Open a bundled resource.

        Args:
            name: Logical resource path, relative to `resources/`

        Returns:
            ResourceHandle to use in a `with` block, or None if not found
        """
        segments = self._resolve(name)
        if segments is None:
            return None
        return ResourceHandle(self.package, segments)

    def exists(self, name: str) -> bool:
        return self._resolve(name) is not None

    def read_bytes(self, name: str) -> bytes | None:
        """Read a whole resource, or None if it does not exist."""
        handle = self.open(name)
        if handle is None:
            return None
        return handle.read_bytes()

    def save(self, name: str, destination: Path, overwrite: bool = False) -> bool:
        """
        Copy a resource into a destination folder.

        The resource keeps its logical path below the destination, so
        "lang/en.toml" is written to `destination/lang/en.toml`.

        Args:
            name: Logical resource path
            destination: Folder to copy into
            overwrite: Replace an existing destination file

        Returns:
            True if the file was written, False if the resource is missing,
            the destination exists and overwrite is False, or I/O failed
        """
        if not name.strip():
            return False

        handle = self.open(name)
        if handle is None:
            return False

        out = Path(destination).joinpath(*handle.name.split("/"))
        try:
            out.parent.mkdir(parents=True, exist_ok=True)

            if out.exists() and not overwrite:
                return False

            with handle as src, open(out, "wb") as dst:
                shutil.copyfileobj(src, dst)
        except OSError as e:
            logger.error(f"Failed to save resource {handle.name} to {out}: {e}")
            return False

        return True

    def list(self) -> ResourceListing:
        """List every bundled resource as a logical path."""
        return ResourceListing(self.package)
