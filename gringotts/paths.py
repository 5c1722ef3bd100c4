import logging
import pathlib
import typing

import attr

from .utils import InvalidName, OutsideStore, in_directory

log = logging.getLogger(__name__)

EXTENSION = '.gpg'


def store_root(path: typing.Union[str, pathlib.Path]) -> pathlib.Path:
    return pathlib.Path(path).expanduser().resolve()


@attr.s(frozen=True)
class PathResolver:
    """
    Map secret names like 'email/work' to files inside the store.

    Names are checked twice: the segments of the name itself must not try to
    leave the store, and the final path (with any symlinks resolved) must
    still be inside the store.
    """

    root: pathlib.Path = attr.ib(converter=store_root)

    def segments(self, name: str) -> typing.Tuple[str, ...]:
        if '\0' in name:
            raise InvalidName(name, "names can't contain NUL bytes")
        if name.startswith('/'):
            raise InvalidName(name, "names must be relative to the store")

        segments = tuple(segment for segment in name.split('/') if segment)
        for segment in segments:
            if segment in ('.', '..'):
                raise InvalidName(name, f"names can't contain '{segment}' segments")
        return segments

    def contained(self, name: str, path: pathlib.Path) -> pathlib.Path:
        """Return path if it is still inside the store once symlinks are followed."""
        if not in_directory(path.resolve(), self.root):
            raise OutsideStore(name, f"resolves to {path.resolve()}")
        return path

    def resolve(self, name: str) -> pathlib.Path:
        """The encrypted file backing the secret called name."""
        segments = self.segments(name)
        if not segments:
            raise InvalidName(name, "names can't be empty")

        *parents, leaf = segments
        path = self.root.joinpath(*parents, f'{leaf}{EXTENSION}')
        log.debug(f"Resolved {name} to {path}")
        return self.contained(name, path)

    def directory(self, name: str = '') -> pathlib.Path:
        """The directory called name, where an empty name is the store itself."""
        return self.contained(name, self.root.joinpath(*self.segments(name)))

    def name_of(self, path: pathlib.Path) -> str:
        """Convert the path to a secret back into the secret's name."""
        relative = path.relative_to(self.root).as_posix()
        if relative.endswith(EXTENSION):
            relative = relative[:-len(EXTENSION)]
        return '' if relative == '.' else relative
