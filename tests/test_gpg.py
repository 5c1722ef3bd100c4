import logging
import pathlib
import subprocess

import pytest

from gringotts.gpg import GPG
from gringotts.utils import DecryptFailure, EncryptFailure


class Recorder:
    def __init__(self, stdout=b'', returncode=0, stderr=b'', error=None):
        self.stdout = stdout
        self.returncode = returncode
        self.stderr = stderr
        self.error = error
        self.calls = []

    def __call__(self, command, **kwargs):
        self.calls.append((command, kwargs))
        if self.error is not None:
            raise self.error
        if self.returncode:
            raise subprocess.CalledProcessError(
                self.returncode, command, output=self.stdout, stderr=self.stderr)
        return subprocess.CompletedProcess(command, 0, stdout=self.stdout, stderr=self.stderr)


@pytest.fixture()
def recorder(monkeypatch):
    def install(**kwargs):
        recorder = Recorder(**kwargs)
        monkeypatch.setattr(subprocess, 'run', recorder)
        return recorder

    return install


def test_command():
    assert GPG().command(['--decrypt']) == ('gpg', '--yes', '--batch', '--quiet', '--decrypt')
    assert GPG(verbose=True).command(['--decrypt']) == ('gpg', '--yes', '--batch', '--verbose', '--decrypt')


def test_environment(monkeypatch):
    monkeypatch.setenv('PATH', '/usr/bin')
    assert GPG().environment() is None

    environment = GPG(home=pathlib.Path('/keys')).environment()
    assert environment['GNUPGHOME'] == '/keys'
    assert environment['PATH'] == '/usr/bin'


def test_decrypt(recorder):
    run = recorder(stdout=b'hunter2\n')

    assert GPG().decrypt(pathlib.Path('/store/email.gpg')) == b'hunter2\n'

    command, kwargs = run.calls[0]
    assert command[-2:] == ('--decrypt', '/store/email.gpg')
    assert kwargs['input'] is None


def test_encrypt(recorder):
    run = recorder(stdout=b'ciphertext')

    assert GPG().encrypt(b'hunter2\n', {'bob@example.invalid', 'alice@example.invalid'}) == b'ciphertext'

    command, kwargs = run.calls[0]
    assert command[4:] == (
        '--encrypt', '--no-encrypt-to', '--compress-algo=none',
        '--recipient', 'alice@example.invalid',
        '--recipient', 'bob@example.invalid',
    )
    assert kwargs['input'] == b'hunter2\n'


def test_decrypt_failure(recorder, caplog):
    recorder(returncode=2, stderr=b'gpg: decryption failed: No secret key\n')

    with caplog.at_level(logging.ERROR), pytest.raises(DecryptFailure) as error:
        GPG().decrypt(pathlib.Path('/store/email.gpg'))

    assert 'status 2' in error.value.message
    assert 'No secret key' in caplog.text


def test_encrypt_failure(recorder):
    recorder(returncode=2, stderr=b'gpg: bob@example.invalid: skipped: No public key\n')

    with pytest.raises(EncryptFailure):
        GPG().encrypt(b'hunter2\n', ['bob@example.invalid'])


def test_missing_gpg(recorder):
    recorder(error=FileNotFoundError(2, 'No such file or directory', 'gpg'))

    with pytest.raises(DecryptFailure) as error:
        GPG().decrypt(pathlib.Path('/store/email.gpg'))

    assert "can't run gpg" in error.value.message
