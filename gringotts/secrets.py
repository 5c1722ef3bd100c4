import logging
import os
import pathlib
import tempfile
import typing

import attr

from .gpg import Cipher
from .history import Event, EventKind, Historian, NoHistory
from .identities import IdentityResolver
from .paths import PathResolver
from .utils import (
    AlreadyExists,
    DecryptFailure,
    EncryptFailure,
    GringottsException,
    IsDirectory,
    NotFound,
    NotificationFailure,
    WriteFailure,
    fsync_directory,
)

log = logging.getLogger(__name__)


@attr.s(frozen=True)
class EntryContent:
    """
    The decrypted contents of a secret.

    The first line is the password, any following lines are free-form
    metadata.
    """

    lines: typing.Tuple[str, ...] = attr.ib(converter=tuple)

    @classmethod
    def from_text(cls, text: str) -> 'EntryContent':
        # Only '\n' ends a line, other separators belong to the secret.
        lines = text.split('\n')
        if lines[-1] == '':
            lines.pop()
        return cls(line[:-1] if line.endswith('\r') else line for line in lines)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'EntryContent':
        return cls.from_text(data.decode('utf-8'))

    @property
    def password(self) -> str:
        return self.lines[0] if self.lines else ''

    @property
    def metadata(self) -> typing.Tuple[str, ...]:
        return self.lines[1:]

    @property
    def text(self) -> str:
        return ''.join(f'{line}\n' for line in self.lines)

    def to_bytes(self) -> bytes:
        return self.text.encode('utf-8')


Editor = typing.Callable[[EntryContent], typing.Optional[EntryContent]]


def missing_directories(directory: pathlib.Path) -> typing.List[pathlib.Path]:
    """Directories that mkdir(parents=True) would create, deepest first."""
    missing = []
    while not directory.exists():
        missing.append(directory)
        directory = directory.parent
    return missing


def remove_directories(directories: typing.Sequence[pathlib.Path]) -> None:
    """Remove directories created for a failed write, stopping at the first one in use."""
    for directory in directories:
        try:
            directory.rmdir()
        except OSError as error:
            log.debug(f"Leaving {directory} in place: {error}")
            return


def decrypt_content(cipher: Cipher, name: str, path: pathlib.Path) -> EntryContent:
    """Decrypt and parse a secret, reporting failures against its name."""
    try:
        return EntryContent.from_bytes(cipher.decrypt(path))
    except GringottsException as error:
        raise error.rename(name) from error
    except UnicodeDecodeError as error:
        raise DecryptFailure(name, f"plaintext is not UTF-8: {error}") from error


@attr.s(frozen=True, kw_only=True)
class EntryStore:
    """Read, write and remove individual secrets."""

    paths: PathResolver = attr.ib()
    identities: IdentityResolver = attr.ib()
    cipher: Cipher = attr.ib()
    history: Historian = attr.ib(factory=NoHistory)

    def locate(self, name: str) -> pathlib.Path:
        """Resolve a name to an existing secret, refusing directories."""
        path = self.paths.resolve(name)
        if not path.is_file():
            if self.paths.directory(name).is_dir():
                raise IsDirectory(name)
            raise NotFound(name)
        return path

    def exists(self, name: str) -> bool:
        return self.paths.resolve(name).is_file()

    def show(self, name: str) -> EntryContent:
        path = self.locate(name)
        log.debug(f"Showing {name} from {path}")
        return decrypt_content(self.cipher, name, path)

    def insert(self, name: str, content: EntryContent, overwrite: bool = False) -> None:
        path = self.paths.resolve(name)
        existed = path.is_file()

        if existed and not overwrite:
            raise AlreadyExists(name)
        if path.is_dir():
            raise IsDirectory(name)

        self.write(name, path, content)
        self.notify(Event(EventKind.UPDATE if existed else EventKind.ADD, name))

    def update(self, name: str, edit: Editor) -> bool:
        """
        Replace a secret with the result of editing its current contents.

        Returns False, without writing or recording anything, when the editor
        returns nothing or returns the contents unchanged.
        """
        path = self.locate(name)
        current = decrypt_content(self.cipher, name, path)
        changed = edit(current)

        if changed is None or changed == current:
            log.info(f"No changes were made to {name}")
            return False

        self.write(name, path, changed)
        self.notify(Event(EventKind.UPDATE, name))
        return True

    def remove(self, name: str) -> None:
        path = self.locate(name)
        log.debug(f"Removing {path}")
        try:
            path.unlink()
        except OSError as error:
            raise WriteFailure(name, str(error)) from error
        self.notify(Event(EventKind.REMOVE, name))

    def write(self, name: str, path: pathlib.Path, content: EntryContent) -> None:
        """
        Encrypt content and atomically replace the file at path with it.

        The ciphertext is written to a temporary file in the same directory
        and renamed over the target, so readers see either the previous file
        or the new one. Nothing on disk changes if encryption fails.
        """
        recipients = self.identities.identities_for(path)

        try:
            ciphertext = self.cipher.encrypt(content.to_bytes(), recipients)
        except EncryptFailure as error:
            raise error.rename(name) from error

        created = missing_directories(path.parent)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, temporary = tempfile.mkstemp(
                prefix=f'.{path.name}.', suffix='.tmp', dir=path.parent)
        except OSError as error:
            remove_directories(created)
            raise WriteFailure(name, str(error)) from error

        log.debug(f"Writing {name} to {path} via {temporary}")
        try:
            try:
                with os.fdopen(fd, 'wb') as file:
                    file.write(ciphertext)
                    file.flush()
                    os.fsync(file.fileno())
                os.replace(temporary, path)
            finally:
                # Only still here if something went wrong before the rename.
                if os.path.exists(temporary):
                    os.unlink(temporary)
        except OSError as error:
            remove_directories(created)
            raise WriteFailure(name, str(error)) from error

        fsync_directory(path.parent)

    def notify(self, event: Event) -> None:
        try:
            self.history.notify(event)
        except NotificationFailure as error:
            log.warning(f"Saved {event.name} but could not record it in the store's history: {error.message}")
