"""
CLI commands for the stored deploy credential.

Thin wrappers over ``hostprov.core.persistence.credential_store``.
The token value itself is never printed.
"""

from __future__ import annotations

import json
import stat
import sys
from pathlib import Path

import click

from hostprov.core.errors import StorageError
from hostprov.core.persistence.credential_store import DEFAULT_CREDENTIAL_PATH, CredentialStore

_PATH_OPTION = click.option(
    "--credential-path",
    "path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CREDENTIAL_PATH,
    show_default=True,
    envvar="HOSTPROV_CREDENTIAL_PATH",
    help="Credential file.",
)


@click.group()
def credential() -> None:
    """Deploy credential — inspect or rotate the stored token."""


@credential.command()
@_PATH_OPTION
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def status(path: Path, as_json: bool) -> None:
    """Check whether a credential is stored and how it is protected."""
    store = CredentialStore(path)
    result: dict = {"path": str(store.path), "exists": store.exists()}

    if store.exists():
        info = store.path.stat()
        result["mode"] = oct(stat.S_IMODE(info.st_mode))
        result["uid"] = info.st_uid
        result["gid"] = info.st_gid
        result["world_accessible"] = bool(info.st_mode & stat.S_IRWXO)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        sys.exit(0 if result["exists"] else 1)

    if not result["exists"]:
        click.secho(f"✗ No credential at {store.path}", fg="red")
        click.echo("  Run: hostprov credential set")
        sys.exit(1)

    click.secho(f"  ✓ Credential stored at {store.path}", fg="green")
    click.echo(f"  Mode: {result['mode']}  Owner: {result['uid']}:{result['gid']}")
    if result["world_accessible"]:
        click.secho("  ⚠️  Readable by other users — run: hostprov credential set", fg="yellow")


@credential.command("set")
@_PATH_OPTION
def set_credential(path: Path) -> None:
    """Store a new token, replacing any existing one."""
    value = click.prompt("Enter GitHub token", hide_input=True, err=True)
    store = CredentialStore(path)
    try:
        store.rotate(value)
    except StorageError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    click.secho(f"  ✓ Credential saved to {store.path}", fg="green")
