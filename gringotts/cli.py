import logging
import pathlib
import typing

import click

from . import __doc__, __version__
from .gpg import GPG
from .secrets import EntryContent
from .spells import Vault, vault
from .tree import Node
from .utils import STORE_ENVVAR, DecryptFailure, default_store_directory

log = logging.getLogger(__name__)

BRANCH = '├── '
LAST = '└── '
CONTINUE = '│   '
EMPTY = '    '


def label(node: Node) -> str:
    """Style the last segment of a node's name."""
    leaf = node.name.rsplit('/', 1)[-1]
    if node.directory:
        return click.style(leaf, fg='blue', bold=True)
    return leaf


def is_last(nodes: typing.Sequence[Node], index: int) -> bool:
    depth = nodes[index].depth
    for node in nodes[index + 1:]:
        if node.depth < depth:
            return True
        if node.depth == depth:
            return False
    return True


def draw(nodes: typing.Iterable[Node]) -> typing.Iterator[str]:
    """Draw nodes from a depth first walk as a tree."""
    nodes = tuple(nodes)
    more: typing.List[bool] = []
    for index, node in enumerate(nodes):
        last = is_last(nodes, index)
        del more[node.depth:]
        prefix = ''.join(CONTINUE if m else EMPTY for m in more)
        yield f"{prefix}{LAST if last else BRANCH}{label(node)}"
        more.append(not last)


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


name_argument = click.argument(
    'name',
    type=click.STRING,
    required=True)

subpath_argument = click.argument(
    'subpath',
    type=click.STRING,
    default='',
    required=False)


@click.group(help=__doc__)
@click.option(
    '-s', '--store', 'path',
    type=PathType(
        file_okay=False,
        dir_okay=True,
        exists=True),
    envvar=STORE_ENVVAR,
    default=default_store_directory,
    required=True,
    help=f"Defaults to ${STORE_ENVVAR} or ~/.password-store.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.option(
    '-v', '--verbose', 'gpg_verbose',
    default=False,
    is_flag=True,
    help="Display GPG's normal STDERR output.")
@click.option(
    '--gnupg-home', 'gpg_home',
    type=PathType(file_okay=False, dir_okay=True, exists=True),
    default=None,
    help="Use a GnuPG home directory other than $GNUPGHOME.")
@click.pass_context
def main(
        ctx,
        debug: bool,
        path: pathlib.Path,
        gpg_verbose: bool,
        gpg_home: typing.Optional[pathlib.Path]):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    ctx.obj = vault(path, cipher=GPG(verbose=gpg_verbose, home=gpg_home))


@main.command()
def version():
    """Show the application version."""
    click.echo(f"gringotts {__version__}")


@main.command()
@subpath_argument
@click.option(
    '-l', '--long',
    default=False,
    is_flag=True,
    help="Print the full name of each secret instead of a tree.")
@click.pass_obj
def ls(v: Vault, subpath: str, long: bool):
    """Show the secrets in the store as a tree."""
    if long:
        for node in v.tree.entries(subpath):
            click.echo(node.name)
        return

    click.echo(click.style(subpath or 'Password Store', bold=True))
    for line in draw(v.tree.list(subpath)):
        click.echo(line)


@main.command()
@click.argument('query', type=click.STRING, required=True)
@click.option(
    '-p', '--print', 'print_contents',
    default=False,
    is_flag=True,
    help="Print the decrypted contents of each secret found.")
@click.pass_obj
def find(v: Vault, query: str, print_contents: bool):
    """List secrets with QUERY in their name."""
    for node in v.tree.find(query):
        if print_contents:
            click.echo(f"{click.style(node.name, fg='blue')}:")
            click.echo(v.entries.show(node.name).text, nl=False)
        else:
            click.echo(node.name)


@main.command()
@name_argument
@click.option(
    '-p', '--password', 'password_only',
    default=False,
    is_flag=True,
    help="Only show the first line of the secret.")
@click.pass_obj
def show(v: Vault, name: str, password_only: bool):
    """Print the decrypted contents of a secret."""
    content = v.entries.show(name)
    if password_only:
        click.echo(content.password)
    else:
        click.echo(content.text, nl=False)


@main.command()
@name_argument
@click.option(
    '-m', '--multiline',
    default=False,
    is_flag=True,
    help="Read lines from STDIN until EOF instead of prompting for a password.")
@click.option(
    '-f', '--force',
    default=False,
    is_flag=True,
    help="Replace the secret if it already exists.")
@click.pass_obj
def insert(v: Vault, name: str, multiline: bool, force: bool):
    """Add a new secret, encrypted for the nearest .gpg-id."""
    if v.entries.exists(name) and not force:
        click.confirm(f"An entry already exists for {name}. Overwrite it?", abort=True)

    if multiline:
        text = click.get_text_stream('stdin').read()
    else:
        text = click.prompt(
            f"Enter password for {name}",
            hide_input=True,
            confirmation_prompt=True)

    content = EntryContent.from_text(text)
    if not content.lines:
        raise click.ClickException("Secret is empty")

    v.entries.insert(name, content, overwrite=True)
    click.echo(f"Saved {name}")


@main.command()
@name_argument
@click.pass_obj
def edit(v: Vault, name: str):
    """
    Edit a secret in your $EDITOR.

    The plaintext only exists in the editor's temporary file for as long as
    the editor is open.
    """
    def editor(content: EntryContent) -> typing.Optional[EntryContent]:
        text = click.edit(text=content.text, extension='.txt')
        if text is None:
            return None
        if not text.strip():
            raise click.ClickException("File is empty")
        return EntryContent.from_text(text)

    if not v.entries.update(name, editor):
        raise click.ClickException("No changes were made to the file")
    click.echo(f"Saved {name}")


@main.command()
@name_argument
@click.option(
    '-f', '--force',
    default=False,
    is_flag=True,
    help="Don't ask for confirmation.")
@click.pass_obj
def rm(v: Vault, name: str, force: bool):
    """Remove a secret. Directories are never removed."""
    if not force:
        click.confirm(f"Are you sure you would like to delete {name}?", abort=True)
    v.entries.remove(name)
    click.echo(f"Removed {name}")


@main.command()
@click.argument('pattern', type=click.STRING, required=True)
@subpath_argument
@click.pass_obj
def grep(v: Vault, pattern: str, subpath: str):
    """Search the decrypted contents of every secret for PATTERN."""
    def warn(error: DecryptFailure):
        click.secho(f"Skipped {error.message}", fg='yellow', err=True)

    for match in v.tree.grep(pattern, subpath, on_failure=warn):
        click.echo(f"{click.style(match.name, fg='blue')}:{match.number}: {match.line}")
