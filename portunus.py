#!/usr/bin/env python3
"""
Portunus - Plaintext Password Vault
A small CLI for storing named secrets in a local JSON file.

Secrets are stored UNENCRYPTED. Anyone who can read the vault file can read
every secret in it.
"""

import os
import sys
import json
import getpass
import secrets
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, TextIO

import click
from colorama import init, Fore, Style

__version__ = "1.0.0"

# ============================================================================
# CONSTANTS & CONFIGURATION
# ============================================================================

PROG_NAME = "portunus"
VAULT_FILE_NAME = "portunus.json"
VAULT_ENV_VAR = "PORTUNUS_VAULT"
VAULT_FILE_MODE = 0o600

PASSWORD_BYTES = 12  # 16 characters once base64 encoded


def user_config_dir() -> Path:
    """Return the platform-appropriate per-user configuration directory."""
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    return Path.home() / ".config"


def default_vault_path() -> Path:
    """Location of the vault when no --vault option or env var is given."""
    return user_config_dir() / VAULT_FILE_NAME


# ============================================================================
# ERRORS
# ============================================================================

class PortunusError(Exception):
    """Base class for every failure reported to the user."""


class VaultAlreadyExists(PortunusError):
    def __init__(self, path: Path):
        super().__init__(f"vault file already exists at {path}")
        self.path = path


class VaultNotFound(PortunusError):
    def __init__(self, path: Path):
        super().__init__(f"no vault file found at {path}")
        self.path = path


class VaultInvalidFormat(PortunusError):
    def __init__(self, path: Path, reason: str = ""):
        message = f"invalid vault file at {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.path = path


class VaultIOError(PortunusError):
    """Read, write or permission failure on the vault file."""

    def __init__(self, path: Path, error: OSError):
        detail = error.strerror or str(error)
        super().__init__(f"cannot access vault file at {path}: {detail}")
        self.path = path


class EntryNotFound(PortunusError):
    def __init__(self, name: str):
        super().__init__("no such value in vault")
        self.name = name


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def print_success(text: str):
    """Print success message."""
    print(f"{Fore.GREEN}✓ {text}{Style.RESET_ALL}")


def print_error(text: str):
    """Print error message to stderr, prefixed with the program name."""
    print(f"{Fore.RED}{PROG_NAME}: {text}{Style.RESET_ALL}", file=sys.stderr)


def print_warning(text: str):
    """Print warning message."""
    print(f"{Fore.YELLOW}⚠ {text}{Style.RESET_ALL}", file=sys.stderr)


def print_info(text: str):
    """Print info message."""
    print(f"{Fore.BLUE}ℹ {text}{Style.RESET_ALL}")


def read_secret(stream: Optional[TextIO] = None) -> str:
    """
    Read one secret from standard input.

    On a terminal the secret is read with echo disabled. Otherwise exactly
    one line is consumed and only its line terminator is removed; the rest
    is kept verbatim, including surrounding whitespace. EOF gives "".
    """
    if stream is None:
        stream = sys.stdin
        if stream.isatty():
            return getpass.getpass("Secret: ")

    line = stream.readline()
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


# ============================================================================
# PASSWORD GENERATOR
# ============================================================================

def generate_password() -> str:
    """
    Generate a random password using the OS CSPRNG.

    12 random bytes, URL-safe base64 without padding: 16 characters drawn
    from [A-Za-z0-9_-].
    """
    return secrets.token_urlsafe(PASSWORD_BYTES)


# ============================================================================
# VAULT
# ============================================================================

class Vault:
    """
    Name to secret mapping backed by a plaintext JSON file.

    Changes are kept in memory until save() is called. Every access to the
    mapping holds the instance lock. Nothing protects the file against a
    second process: whoever saves last wins.
    """

    def __init__(self, path: Path, entries: Optional[Dict[str, str]] = None):
        self.path = Path(path)
        self._entries: Dict[str, str] = dict(entries or {})
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Vault(path={str(self.path)!r}, entries={len(self)})"

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

    @property
    def entries(self) -> Dict[str, str]:
        """Copy of the current mapping."""
        with self._lock:
            return dict(self._entries)

    # -- lifecycle -----------------------------------------------------------

    @classmethod
    def create(cls, path: Path) -> "Vault":
        """
        Create an empty vault file at `path` and return the vault bound to it.

        The file is created exclusively, so an existing vault is never
        overwritten: VaultAlreadyExists is raised and the file is left alone.
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise VaultIOError(path, e) from e

        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, VAULT_FILE_MODE)
        except FileExistsError:
            raise VaultAlreadyExists(path) from None
        except OSError as e:
            raise VaultIOError(path, e) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write("{}")
        except OSError as e:
            raise VaultIOError(path, e) from e

        return cls(path)

    @classmethod
    def open(cls, path: Path) -> "Vault":
        """Load the vault stored at `path`."""
        path = Path(path)
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except FileNotFoundError:
            raise VaultNotFound(path) from None
        except OSError as e:
            raise VaultIOError(path, e) from e

        try:
            data = json.loads(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise VaultInvalidFormat(path, "not UTF-8 text") from e
        except json.JSONDecodeError as e:
            raise VaultInvalidFormat(path, e.msg) from e
        except RecursionError as e:
            raise VaultInvalidFormat(path, "nesting too deep") from e

        if not isinstance(data, dict):
            raise VaultInvalidFormat(path, "top level is not an object")
        for name, value in data.items():
            if not isinstance(value, str):
                raise VaultInvalidFormat(path, f"value of {name!r} is not a string")
            try:
                name.encode("utf-8")
                value.encode("utf-8")
            except UnicodeEncodeError as e:
                raise VaultInvalidFormat(path, f"entry {name!r} holds a lone surrogate") from e

        return cls(path, data)

    def save(self):
        """
        Write the whole mapping to the vault file.

        The data goes to a temporary file next to the vault which then
        replaces it, so a failed save leaves the previous file intact.
        """
        with self._lock:
            text = json.dumps(
                self._entries, sort_keys=True, separators=(",", ":"), ensure_ascii=False
            )
        try:
            data = text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise VaultInvalidFormat(self.path, "an entry holds a lone surrogate") from e

        directory = self.path.parent
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
        except OSError as e:
            raise VaultIOError(self.path, e) from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, VAULT_FILE_MODE)
            os.replace(tmp_name, self.path)
        except BaseException as e:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            if isinstance(e, OSError):
                raise VaultIOError(self.path, e) from e
            raise

    # -- entries -------------------------------------------------------------

    def set(self, name: str, value: str):
        """Store `value` under `name` verbatim, replacing any previous value."""
        with self._lock:
            self._entries[name] = value

    def new(self, name: str) -> str:
        """Store a freshly generated password under `name` and return it."""
        password = generate_password()
        with self._lock:
            self._entries[name] = password
        return password

    def get(self, name: str) -> str:
        with self._lock:
            try:
                return self._entries[name]
            except KeyError:
                raise EntryNotFound(name) from None

    def remove(self, name: str):
        with self._lock:
            try:
                del self._entries[name]
            except KeyError:
                raise EntryNotFound(name) from None

    def names(self) -> List[str]:
        """All entry names in ascending order."""
        with self._lock:
            return sorted(self._entries)


# ============================================================================
# CLI INTERFACE
# ============================================================================

@contextmanager
def reported_errors() -> Iterator[None]:
    """Report vault failures as `portunus: <message>` and exit with status 1."""
    try:
        yield
    except PortunusError as e:
        print_error(str(e))
        sys.exit(1)


@click.group()
@click.option(
    "--vault",
    "vault_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar=VAULT_ENV_VAR,
    default=None,
    help=f"Vault file to use (default: {VAULT_FILE_NAME} in the user config directory).",
)
@click.version_option(__version__, prog_name=PROG_NAME)
@click.pass_context
def cli(ctx, vault_path):
    """
    Portunus - Plaintext Password Vault

    Stores named secrets in a local JSON file and generates random passwords.
    The vault is NOT encrypted.
    """
    ctx.obj = vault_path if vault_path is not None else default_vault_path()


@cli.command("vlt")
@click.pass_obj
def create_vault(path: Path):
    """Create a new, empty vault."""
    with reported_errors():
        Vault.create(path)
    print_success("Vault created.")
    print_info(f"Vault location: {path}")
    print_warning("Secrets in this vault are stored unencrypted.")


@cli.command("set")
@click.argument("name")
@click.pass_obj
def set_entry(path: Path, name: str):
    """Read a secret from stdin and store it as NAME."""
    with reported_errors():
        vault = Vault.open(path)
        vault.set(name, read_secret())
        vault.save()
    print_success(f"Entry '{name}' saved.")


@cli.command("new")
@click.argument("name")
@click.pass_obj
def new_entry(path: Path, name: str):
    """Generate a password and store it as NAME."""
    with reported_errors():
        vault = Vault.open(path)
        vault.new(name)
        vault.save()
    print_success(f"Generated password saved as '{name}'.")


@cli.command("get")
@click.argument("name")
@click.pass_obj
def get_entry(path: Path, name: str):
    """Print the secret stored as NAME."""
    with reported_errors():
        secret = Vault.open(path).get(name)
    click.echo(secret)


@cli.command("lst")
@click.pass_obj
def list_entries(path: Path):
    """List entry names, one per line."""
    with reported_errors():
        names = Vault.open(path).names()
    for name in names:
        click.echo(name)


@cli.command("rem")
@click.argument("name")
@click.pass_obj
def remove_entry(path: Path, name: str):
    """Remove the entry NAME."""
    with reported_errors():
        vault = Vault.open(path)
        vault.remove(name)
        vault.save()
    print_success(f"Entry '{name}' removed.")


@cli.command("gen")
def generate():
    """Print a generated password without storing it."""
    click.echo(generate_password())


def main():
    init(autoreset=True)
    cli(prog_name=PROG_NAME)


if __name__ == "__main__":
    main()
