"""
cvpn command-line interface.

    cvpn create office --region us-east-1 --cidr 10.0.0.0/16
    cvpn status office
    cvpn list
    cvpn delete office
    cvpn resume office

Each invocation loads the state file, runs one lifecycle operation and exits.
Results are printed to stdout as YAML; logs and errors go to stderr.
"""

import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer
import yaml

from cvpn.config import settings
from cvpn.dao.yaml_file import YAMLFileVPNStateStore
from cvpn.dependencies.dao import get_cloud_client, get_state_store
from cvpn.errors import ProviderError, VPNError
from cvpn.services.vpn import (
    fetch_all_vpns,
    fetch_vpn_status,
    provision_vpn,
    resume_vpn,
    teardown_vpn,
)

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Create, inspect and delete site-to-site VPN networks on AWS.",
)


def _store(ctx: typer.Context):
    state_file = ctx.obj.get("state_file") if ctx.obj else None
    if state_file is not None:
        return YAMLFileVPNStateStore(state_file)
    return get_state_store()


def _echo_yaml(document) -> None:
    typer.echo(yaml.safe_dump(document, default_flow_style=False, sort_keys=False).rstrip())


def _fail(operation: str, name: str, exc: Exception) -> NoReturn:
    typer.echo(f"Error: {operation} '{name}' failed: {exc}", err=True)
    record = getattr(exc, "record", None)
    if isinstance(exc, ProviderError) and record is not None:
        typer.echo(
            f"State for '{name}' was kept at status '{record.status.value}'; "
            f"run 'cvpn resume {name}' or 'cvpn delete {name}' to continue.",
            err=True,
        )
        _echo_yaml({name: record.to_document()})
    raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    state_file: Optional[Path] = typer.Option(
        None,
        "--state-file",
        envvar="STATE_FILE",
        help="State file to use instead of ~/.vpnrc.yml.",
    ),
    log_level: str = typer.Option(
        settings.log_level, "--log-level", help="Logging level for stderr output."
    ),
) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        stream=sys.stderr,
    )
    ctx.obj = {"state_file": state_file}


@app.command()
def create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the VPN"),
    region: str = typer.Option(..., "--region", "-r", help="AWS region"),
    cidr: str = typer.Option(..., "--cidr", "-c", help="CIDR block for the VPC"),
    created_by: Optional[str] = typer.Option(
        None, "--created-by", envvar="USER", help="Name recorded as the creator"
    ),
) -> None:
    """Create a new VPN."""
    try:
        record = provision_vpn(
            name, region, cidr, store=_store(ctx), cloud=get_cloud_client(), created_by=created_by
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    except VPNError as exc:
        _fail("create", name, exc)
    _echo_yaml({name: record.to_document()})


@app.command()
def delete(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the VPN"),
) -> None:
    """Delete a VPN and its cloud resources."""
    try:
        teardown_vpn(name, store=_store(ctx), cloud=get_cloud_client())
    except VPNError as exc:
        _fail("delete", name, exc)
    typer.echo(f"VPN '{name}' deleted.")


@app.command("list")
def list_vpns(ctx: typer.Context) -> None:
    """List all VPNs."""
    try:
        vpns = fetch_all_vpns(store=_store(ctx))
    except VPNError as exc:
        _fail("list", "*", exc)
    _echo_yaml({name: record.to_document() for name, record in vpns.items()})


@app.command()
def status(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the VPN"),
) -> None:
    """Show a VPN with its live gateway state."""
    try:
        result = fetch_vpn_status(name, store=_store(ctx), cloud=get_cloud_client())
    except VPNError as exc:
        _fail("status", name, exc)
    _echo_yaml(result.model_dump(mode="json", by_alias=True))


@app.command()
def resume(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the VPN"),
) -> None:
    """Continue an interrupted create or delete."""
    try:
        record = resume_vpn(name, store=_store(ctx), cloud=get_cloud_client())
    except VPNError as exc:
        _fail("resume", name, exc)
    if record is None:
        typer.echo(f"VPN '{name}' deleted.")
        return
    _echo_yaml({name: record.to_document()})


if __name__ == "__main__":
    app()
