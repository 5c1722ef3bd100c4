"""
Find the identities a secret is encrypted for.

Each directory in the store can contain a '.gpg-id' file listing the
identities (key ids, fingerprints or emails) that secrets in that directory
and all directories below it are encrypted for. The nearest file wins, and a
subdirectory's file replaces its parents' files rather than adding to them.
"""

import logging
import pathlib
import typing

import attr

from .paths import PathResolver
from .utils import NoIdentity

log = logging.getLogger(__name__)

DECLARATION = '.gpg-id'

Identities = typing.FrozenSet[str]


def parse_declaration(text: str) -> Identities:
    """One identity per line, ignoring blank lines and '#' comments."""
    identities = (line.split('#', 1)[0].strip() for line in text.splitlines())
    return frozenset(identity for identity in identities if identity)


@attr.s(frozen=True)
class IdentityResolver:
    paths: PathResolver = attr.ib()

    def declaration_for(self, path: pathlib.Path) -> typing.Optional[pathlib.Path]:
        """Find the nearest declaration above a secret, up to and including the root."""
        segments = path.parent.relative_to(self.paths.root).parts
        for cursor in range(len(segments), -1, -1):
            declaration = self.paths.root.joinpath(*segments[:cursor], DECLARATION)
            if declaration.is_file():
                log.debug(f"Found {declaration} for {path}")
                return declaration
        return None

    def identities_for(self, path: pathlib.Path, required: bool = True) -> Identities:
        name = self.paths.name_of(path)
        declaration = self.declaration_for(path)

        identities: Identities = frozenset()
        if declaration is not None:
            try:
                identities = parse_declaration(declaration.read_text(encoding='utf-8'))
            except (OSError, UnicodeDecodeError) as error:
                raise NoIdentity(name, f"can't read {declaration}: {error}") from error

        if not identities and required:
            if declaration is None:
                raise NoIdentity(name, f"no {DECLARATION} file in the store")
            raise NoIdentity(name, f"{declaration} lists no identities")

        return identities
