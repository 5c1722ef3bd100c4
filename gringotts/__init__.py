"""
Gringotts manages a pass(1) style store of GPG encrypted secrets.

Each secret is a file named '<name>.gpg' inside the store directory. Secrets are encrypted for the
identities listed in the nearest '.gpg-id' file found by walking up from the secret's directory to
the root of the store. The gpg command is used to perform all encryption and decryption, and
plaintext is only ever passed to and from it through pipes. When the store is a git repository,
every change is committed.

Select the store (defaults to ~/.password-store):

\b
    $ export PASSWORD_STORE_DIR="$HOME/.password-store"

Add a secret and read it back:

\b
    $ gringotts insert email/work
    $ gringotts show email/work

Edit a secret in your $EDITOR without writing plaintext to the store:

\b
    $ gringotts edit email/work

Search the names and the decrypted contents of all secrets:

\b
    $ gringotts find email
    $ gringotts grep "username:"
"""

__version__ = '0.1.0'
