"""
Walk the store to list, find and search secrets.

Every call returns a new generator, nothing is read from disk until it is
iterated and nothing is shared between walks.
"""

import logging
import os
import pathlib
import typing

import attr

from .gpg import Cipher
from .paths import EXTENSION, PathResolver
from .secrets import decrypt_content
from .utils import CycleDetected, DecryptFailure, NotFound, ReadFailure, in_directory

log = logging.getLogger(__name__)

FileId = typing.Tuple[int, int]


@attr.s(frozen=True, kw_only=True)
class Node:
    name: str = attr.ib()
    path: pathlib.Path = attr.ib()
    directory: bool = attr.ib()
    depth: int = attr.ib()

    def __str__(self):
        return self.name


@attr.s(frozen=True)
class Match:
    name: str = attr.ib()
    number: int = attr.ib()
    line: str = attr.ib()


def file_id(name: str, path: pathlib.Path) -> FileId:
    try:
        stat = path.stat()
    except FileNotFoundError as error:
        raise NotFound(name, str(error)) from error
    except OSError as error:
        raise ReadFailure(name, str(error)) from error
    return stat.st_dev, stat.st_ino


@attr.s(frozen=True, kw_only=True)
class TreeWalker:
    paths: PathResolver = attr.ib()
    cipher: Cipher = attr.ib()

    def list(self, subpath: str = '') -> typing.Iterator[Node]:
        """
        Directories and secrets below subpath, depth first and sorted by name.

        Directories are yielded before their contents. Following a symlink
        back into a directory that is already being walked raises
        CycleDetected instead of walking forever. Symlinks that lead out of
        the store are skipped with a warning.
        """
        directory = self.paths.directory(subpath)
        if not directory.is_dir():
            raise NotFound(subpath)
        log.debug(f"Listing {directory}")
        ancestors = frozenset([file_id(subpath, directory)])
        return self.walk(directory, depth=0, ancestors=ancestors)

    def walk(
            self,
            directory: pathlib.Path,
            depth: int,
            ancestors: typing.FrozenSet[FileId]) -> typing.Iterator[Node]:
        for path in self.children(directory):
            name = self.paths.name_of(path)
            if not self.inside(name, path):
                log.warning(f"Skipping {name}: {path} links outside the store")
                continue
            if path.is_dir():
                identity = file_id(name, path)
                if identity in ancestors:
                    raise CycleDetected(name, f"{path} links back to {os.path.realpath(path)}")
                yield Node(name=name, path=path, directory=True, depth=depth)
                yield from self.walk(path, depth + 1, ancestors | {identity})
            else:
                yield Node(name=name, path=path, directory=False, depth=depth)

    def inside(self, name: str, path: pathlib.Path) -> bool:
        """Check a path is still inside the store once symlinks are followed."""
        try:
            resolved = path.resolve()
        except (OSError, RuntimeError) as error:
            raise ReadFailure(name, str(error)) from error
        return in_directory(resolved, self.paths.root)

    def children(self, directory: pathlib.Path) -> typing.Sequence[pathlib.Path]:
        """Visible directories and secrets in a directory, sorted by name."""
        name = self.paths.name_of(directory)
        children: typing.Dict[pathlib.Path, str] = {}
        try:
            for path in directory.iterdir():
                if path.name.startswith('.'):
                    continue
                if path.is_dir():
                    children[path] = path.name
                elif path.is_file() and path.name.endswith(EXTENSION):
                    children[path] = path.name[:-len(EXTENSION)]
        except FileNotFoundError as error:
            raise NotFound(name, str(error)) from error
        except OSError as error:
            raise ReadFailure(name, str(error)) from error
        return tuple(sorted(children, key=lambda p: (children[p], p.name)))

    def entries(self, subpath: str = '') -> typing.Iterator[Node]:
        return (node for node in self.list(subpath) if not node.directory)

    def find(self, query: str, subpath: str = '') -> typing.Iterator[Node]:
        """Secrets with query anywhere in their name."""
        return (node for node in self.entries(subpath) if query in node.name)

    def grep(
            self,
            pattern: str,
            subpath: str = '',
            on_failure: typing.Optional[typing.Callable[[DecryptFailure], None]] = None,
    ) -> typing.Iterator[Match]:
        """
        Lines of decrypted secrets that contain pattern.

        A secret that can't be decrypted is logged, passed to on_failure and
        skipped rather than ending the search.
        """
        for node in self.entries(subpath):
            try:
                content = decrypt_content(self.cipher, node.name, node.path)
            except DecryptFailure as error:
                log.warning(f"Skipping {node.name}: {error.message}")
                if on_failure is not None:
                    on_failure(error)
                continue

            for number, line in enumerate(content.lines, start=1):
                if pattern in line:
                    yield Match(node.name, number, line)
