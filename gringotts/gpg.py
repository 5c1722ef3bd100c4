import logging
import os
import pathlib
import subprocess
import typing

import attr

from .utils import DecryptFailure, EncryptFailure

log = logging.getLogger(__name__)


class Cipher:
    """
    Turns plaintext into ciphertext and back.

    Plaintext is only ever passed around in memory, implementations must never
    write it to disk.
    """

    def decrypt(self, path: pathlib.Path) -> bytes:
        raise NotImplementedError

    def encrypt(self, plaintext: bytes, recipients: typing.Iterable[str]) -> bytes:
        raise NotImplementedError


@attr.s(frozen=True)
class GPG(Cipher):
    verbose: bool = attr.ib(default=False)
    home: typing.Optional[pathlib.Path] = attr.ib(default=None)

    def command(self, arguments: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        command: typing.Tuple[str, ...] = ('gpg', '--yes', '--batch')
        if self.verbose:
            command = (*command, '--verbose')
        else:
            command = (*command, '--quiet')
        return (*command, *arguments)

    def environment(self) -> typing.Optional[typing.Dict[str, str]]:
        if self.home is None:
            return None
        return {**os.environ, 'GNUPGHOME': self.home.as_posix()}

    def run(self,
            arguments: typing.Sequence[str],
            stdin: typing.Optional[bytes] = None) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                self.command(arguments),
                input=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self.environment(),
                check=True)
        except subprocess.CalledProcessError as error:
            for line in error.stderr.decode('utf-8', 'replace').splitlines():
                log.error(line)
            raise

    def decrypt(self, path: pathlib.Path) -> bytes:
        """Decrypt a file, returning the plaintext without writing it anywhere."""
        log.debug(f"Decrypting {path}")
        try:
            return self.run(['--decrypt', str(path)]).stdout
        except subprocess.CalledProcessError as error:
            raise DecryptFailure(str(path), f"gpg exited with status {error.returncode}") from error
        except OSError as error:
            raise DecryptFailure(str(path), f"can't run gpg: {error}") from error

    def encrypt(self, plaintext: bytes, recipients: typing.Iterable[str]) -> bytes:
        """Encrypt plaintext for a set of recipients, returning the ciphertext."""
        recipients = sorted(recipients)
        log.debug(f"Encrypting {len(plaintext)} bytes for {', '.join(recipients)}")
        args: typing.List[str] = ['--encrypt', '--no-encrypt-to', '--compress-algo=none']
        for recipient in recipients:
            args += ['--recipient', recipient]
        try:
            return self.run(args, stdin=plaintext).stdout
        except subprocess.CalledProcessError as error:
            raise EncryptFailure(', '.join(recipients), f"gpg exited with status {error.returncode}") from error
        except OSError as error:
            raise EncryptFailure(', '.join(recipients), f"can't run gpg: {error}") from error
