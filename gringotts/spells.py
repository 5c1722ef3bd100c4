import pathlib
import typing

import attr

from .gpg import GPG, Cipher
from .history import Historian, history_for
from .identities import IdentityResolver
from .paths import PathResolver
from .secrets import EntryStore
from .tree import TreeWalker


@attr.s(frozen=True, kw_only=True)
class Vault:
    entries: EntryStore = attr.ib()
    tree: TreeWalker = attr.ib()


def vault(
        directory: pathlib.Path,
        cipher: typing.Optional[Cipher] = None,
        history: typing.Optional[Historian] = None) -> Vault:
    """Open the store in directory, committing changes to git when it is a repository."""
    paths = PathResolver(directory)
    cipher = GPG() if cipher is None else cipher
    history = history_for(paths.root) if history is None else history
    return Vault(
        entries=EntryStore(
            paths=paths,
            identities=IdentityResolver(paths),
            cipher=cipher,
            history=history),
        tree=TreeWalker(paths=paths, cipher=cipher))
