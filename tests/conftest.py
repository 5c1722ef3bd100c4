import pathlib
import typing

import attr
import click.testing
import pytest

import gringotts.cli
from gringotts.gpg import Cipher
from gringotts.history import Event, Historian
from gringotts.secrets import EntryContent
from gringotts.spells import Vault, vault
from gringotts.utils import DecryptFailure, EncryptFailure, NotificationFailure

IDENTITY = 'root@example.invalid'
MAGIC = b'FAKE-GPG\n'


@attr.s
class FakeCipher(Cipher):
    """Reversible stand-in for gpg that records who each secret was encrypted for."""

    fail_encrypt: bool = attr.ib(default=False)
    recipients: typing.List[typing.List[str]] = attr.ib(factory=list)

    def encrypt(self, plaintext, recipients):
        recipients = sorted(recipients)
        if self.fail_encrypt:
            raise EncryptFailure(', '.join(recipients), "simulated failure")
        self.recipients.append(recipients)
        header = ','.join(recipients).encode()
        return MAGIC + header + b'\n' + bytes(reversed(plaintext))

    def decrypt(self, path):
        data = path.read_bytes()
        if not data.startswith(MAGIC):
            raise DecryptFailure(str(path), "no usable secret key")
        _, body = data[len(MAGIC):].split(b'\n', 1)
        return bytes(reversed(body))

    @staticmethod
    def recipients_of(path: pathlib.Path) -> typing.List[str]:
        header = path.read_bytes()[len(MAGIC):].split(b'\n', 1)[0]
        return header.decode().split(',')


@attr.s
class RecordingHistory(Historian):
    fail: bool = attr.ib(default=False)
    events: typing.List[Event] = attr.ib(factory=list)

    def notify(self, event):
        if self.fail:
            raise NotificationFailure(event.name, "simulated failure")
        self.events.append(event)


@pytest.fixture()
def root(tmp_path) -> pathlib.Path:
    store = tmp_path / 'store'
    store.mkdir()
    (store / '.gpg-id').write_text(f'{IDENTITY}\n')
    return store.resolve()


@pytest.fixture()
def cipher() -> FakeCipher:
    return FakeCipher()


@pytest.fixture()
def history() -> RecordingHistory:
    return RecordingHistory()


@pytest.fixture()
def v(root, cipher, history) -> Vault:
    return vault(root, cipher=cipher, history=history)


@pytest.fixture()
def add(v):
    def add_func(name: str, *lines: str) -> pathlib.Path:
        v.entries.insert(name, EntryContent(lines), overwrite=True)
        return v.entries.paths.resolve(name)

    return add_func


@pytest.fixture()
def run(root, cipher, monkeypatch):
    monkeypatch.setattr(gringotts.cli, 'GPG', lambda **kwargs: cipher)

    def run_func(arguments: typing.Sequence[str], input: typing.Optional[str] = None):
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        return runner.invoke(gringotts.cli.main, ['-s', str(root), *arguments], input=input)

    return run_func


@pytest.fixture()
def invoke(run):
    def invoke_func(arguments: typing.Sequence[str], input: typing.Optional[str] = None):
        result = run(arguments, input=input)
        if result.exit_code != 0:
            message = f"Command gringotts {' '.join(arguments)} failed: {result.output}"
            raise Exception(message) from result.exception
        return result.output.splitlines()

    return invoke_func
