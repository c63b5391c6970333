"""
Command-line interface for the Identity Hub verifier.

Usage:
    hub-verify verify did:web:example.com
    hub-verify verify --json-output did:web:example.com
    hub-verify publish did:web:example.com credential.jwt
    cat credential.jwt | hub-verify publish did:web:example.com -
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from hub_verifier.credentials import Credential
from hub_verifier.did_resolver import DIDDocument, DIDResolutionError, DIDResolver
from hub_verifier.hub_client import HttpIdentityHubClient
from hub_verifier.jwt_verifier import DEFAULT_LEEWAY_SECONDS
from hub_verifier.verifier import HUB_URL_NOT_RESOLVED, create_verifier


console = Console()


def configure_logging(verbose: bool) -> None:
    """Send library logs to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def format_credentials(did: str, credentials: list[Credential]) -> None:
    """Print verified credentials as a table."""
    if not credentials:
        console.print(Panel(
            "[yellow]No verified credentials[/]\n"
            "[dim]Either none are published or none passed verification; "
            "run with --verbose to see rejected ones.[/]",
            title=did,
            border_style="yellow",
        ))
        return

    table = Table(title=f"Verified credentials of {did}")
    table.add_column("ID", no_wrap=True)
    table.add_column("Issuer")
    table.add_column("Types", style="dim")
    table.add_column("Claims")

    for credential in credentials:
        claims = ", ".join(f"{k}={v}" for k, v in credential.claims.items())
        table.add_row(
            credential.id,
            credential.issuer,
            ", ".join(credential.types),
            claims,
        )

    console.print(table)


def load_token(source: str) -> bytes:
    """Load a serialized credential from a file, or stdin for "-"."""
    if source == "-":
        return sys.stdin.read().strip().encode("utf-8")

    path = Path(source)
    if not path.exists():
        raise click.ClickException(f"File not found: {source}")
    return path.read_bytes().strip()


def resolve_document(did: str, timeout: float, verify_ssl: bool) -> DIDDocument:
    try:
        return DIDResolver(timeout=timeout, verify_ssl=verify_ssl).resolve(did)
    except DIDResolutionError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option(
    "--timeout",
    type=float,
    default=30.0,
    help="HTTP request timeout in seconds",
)
@click.option(
    "--no-ssl-verify",
    is_flag=True,
    help="Disable SSL certificate verification",
)
@click.option("-v", "--verbose", is_flag=True, help="Log rejected credentials and HTTP calls")
@click.version_option(package_name="identity-hub-verifier")
@click.pass_context
def main(ctx: click.Context, timeout: float, no_ssl_verify: bool, verbose: bool) -> None:
    """Verify credentials published on a DID subject's Identity Hub."""
    configure_logging(verbose)
    ctx.obj = {"timeout": timeout, "verify_ssl": not no_ssl_verify}


@main.command()
@click.argument("did", required=True)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=1,
    help="Threads used to verify credentials",
)
@click.option(
    "--leeway",
    type=click.IntRange(min=0),
    default=DEFAULT_LEEWAY_SECONDS,
    help="Accepted clock skew in seconds for exp/nbf/iat",
)
@click.option(
    "--json-output",
    is_flag=True,
    help="Output result as JSON",
)
@click.pass_obj
def verify(obj: dict, did: str, workers: int, leeway: int, json_output: bool) -> None:
    """Verify the credentials published on the Identity Hub of DID.

    Examples:

        hub-verify verify did:web:example.com

        hub-verify --verbose verify --workers 4 did:web:example.com:users:alice
    """
    did_document = resolve_document(did, obj["timeout"], obj["verify_ssl"])
    verifier = create_verifier(
        timeout=obj["timeout"],
        verify_ssl=obj["verify_ssl"],
        leeway=leeway,
        max_workers=workers,
    )

    result = verifier.get_verified_credentials(did_document)

    if json_output:
        if result.failed:
            console.print_json(data={"errors": list(result.failure_messages)})
        else:
            console.print_json(data={
                "did": did,
                "credentials": [c.to_dict() for c in result.content],
            })
    elif result.failed:
        for message in result.failure_messages:
            console.print(f"[red]Error:[/] {message}")
    else:
        format_credentials(did, result.content)

    sys.exit(1 if result.failed else 0)


@main.command()
@click.argument("did", required=True)
@click.argument("source", required=True)
@click.pass_obj
def publish(obj: dict, did: str, source: str) -> None:
    """Write the credential in SOURCE to the Identity Hub of DID.

    SOURCE is a file holding a JWT credential, or "-" to read from stdin.
    """
    token = load_token(source)
    did_document = resolve_document(did, obj["timeout"], obj["verify_ssl"])

    hub_url = did_document.identity_hub_url
    if hub_url is None:
        raise click.ClickException(HUB_URL_NOT_RESOLVED)

    client = HttpIdentityHubClient(timeout=obj["timeout"], verify_ssl=obj["verify_ssl"])
    result = client.add_verifiable_credential(hub_url, token)
    if result.failed:
        retry = "" if result.fatal else " (retryable)"
        raise click.ClickException(f"{result.failure_detail}{retry}")

    console.print(f"[green]Published[/] credential to {hub_url}")


if __name__ == "__main__":
    main()
