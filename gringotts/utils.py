import os
import pathlib
import typing

import click

STORE_ENVVAR = 'PASSWORD_STORE_DIR'


def default_store_directory() -> pathlib.Path:
    """The store used when neither --store nor $PASSWORD_STORE_DIR is set."""
    return pathlib.Path.home() / '.password-store'


def in_directory(
        path: pathlib.Path,
        directory: pathlib.Path) -> bool:
    """Check if a path is the directory itself or somewhere below it."""
    try:
        path.relative_to(directory)
    except ValueError:
        return False
    else:
        return True


def fsync_directory(directory: pathlib.Path) -> None:
    """Flush a rename in a directory to disk, where the platform allows it."""
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


class GringottsException(click.ClickException):
    """
    Base class for all errors about a single secret or store path.

    The message always names the kind of error and the offending name, any
    lower level error text is only ever included as the detail.
    """

    def __init__(self, name: str, detail: typing.Optional[str] = None):
        self.name = name
        self.detail = detail
        message = f"{self.kind}: {name or '<store root>'}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def rename(self, name: str) -> 'GringottsException':
        """A copy of this error reported against a different name."""
        return type(self)(name, self.detail)


class InvalidName(GringottsException):
    pass


class OutsideStore(GringottsException):
    pass


class NotFound(GringottsException):
    pass


class AlreadyExists(GringottsException):
    pass


class NoIdentity(GringottsException):
    pass


class IsDirectory(GringottsException):
    pass


class CycleDetected(GringottsException):
    pass


class DecryptFailure(GringottsException):
    pass


class EncryptFailure(GringottsException):
    pass


class ReadFailure(GringottsException):
    pass


class WriteFailure(GringottsException):
    pass


class NotificationFailure(GringottsException):
    pass
