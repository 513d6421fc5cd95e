"""Commands that work without starting the daemons."""

from __future__ import annotations

import sys

import click

from ..config import Config
from ..errors import KubernixError
from ..host import hostname as detect_hostname
from ..host import local_ip
from ..kubeconfig import KubeConfig
from ..pki import Pki
from ..toolchain import TOOLS, Toolchain


@click.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Check that required executables and certificates are present."""
    config: Config = ctx.obj["config"]
    toolchain = Toolchain.discover()
    found = toolchain.found()

    click.echo("Executables:")
    for tool in TOOLS:
        if tool in found:
            click.echo(f"  ✓ {tool}: {found[tool]}")
        else:
            click.echo(f"  ✗ {tool}: not found in $PATH")

    missing_certs = Pki.from_dir(config.pki_dir).missing()
    click.echo(f"\nCertificates ({config.pki_dir}):")
    if missing_certs:
        for path in missing_certs:
            click.echo(f"  ✗ {path.name}: missing")
    else:
        click.echo("  ✓ complete")

    if toolchain.missing():
        click.echo(f"\n✗ Missing executables: {', '.join(toolchain.missing())}", err=True)
        sys.exit(1)


@click.command()
@click.option("--ip", default=None, help="Node IP address (default: autodetect)")
@click.option("--hostname", default=None, help="Node hostname (default: autodetect)")
@click.pass_context
def kubeconfig(ctx: click.Context, ip: str | None, hostname: str | None) -> None:
    """Regenerate kubeconfigs without starting any service."""
    config: Config = ctx.obj["config"]
    try:
        kube = KubeConfig.build(
            config,
            Pki.from_dir(config.pki_dir),
            ip or local_ip(),
            hostname or detect_hostname(),
            Toolchain.discover(),
        )
    except KubernixError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    for role, path in kube.items().items():
        click.echo(f"✓ {role}: {path}")
