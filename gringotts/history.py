"""
Record changes to the store in version control.

History is best effort: by the time a Historian is told about a change the
encrypted file is already in place, so failures here are reported but never
undo the change.
"""

import enum
import logging
import pathlib
import typing

import attr
import git

from .paths import EXTENSION
from .utils import NotificationFailure

log = logging.getLogger(__name__)


class EventKind(enum.Enum):
    ADD = 'add'
    UPDATE = 'update'
    REMOVE = 'remove'


@attr.s(frozen=True)
class Event:
    kind: EventKind = attr.ib()
    name: str = attr.ib()

    @property
    def message(self) -> str:
        if self.kind is EventKind.ADD:
            return f"Add given password {self.name} to store."
        if self.kind is EventKind.UPDATE:
            return f"Edit password for {self.name}."
        return f"Remove {self.name} from store."


class Historian:
    def notify(self, event: Event) -> None:
        raise NotImplementedError


class NoHistory(Historian):
    def notify(self, event: Event) -> None:
        log.debug(f"Not recording '{event.message}', the store has no history")


@attr.s(frozen=True)
class GitHistory(Historian):
    repo: git.Repo = attr.ib()
    sign: bool = attr.ib(default=False)

    @classmethod
    def open(cls, directory: pathlib.Path) -> 'GitHistory':
        repo = git.Repo(directory)
        sign = repo.config_reader().get_value('pass', 'signcommits', False)
        return cls(repo=repo, sign=(sign is True))

    @property
    def directory(self) -> pathlib.Path:
        return pathlib.Path(self.repo.working_dir)

    def notify(self, event: Event) -> None:
        path = f'{event.name}{EXTENSION}'
        log.debug(f"Committing '{event.message}' in {self.directory}")

        args: typing.List[str] = ['-m', event.message]
        if self.sign:
            args.append('-S')

        try:
            # '--all' stages removals as well as additions and changes.
            self.repo.git.add('--all', '--', path)
            self.repo.git.commit(*args)
        except git.exc.GitError as error:
            raise NotificationFailure(event.name, str(error)) from error


def history_for(directory: pathlib.Path) -> Historian:
    """Use git when the store is the top of a git repository, otherwise keep no history."""
    try:
        history = GitHistory.open(directory)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        log.info(f"{directory} is not a git repository, changes won't be committed")
        return NoHistory()
    log.info(f"Recording changes in the git repository at {history.directory}")
    return history
