"""Up command: run a local single-node control plane.

Starts CRI-O and etcd, writes the kubeconfigs, then keeps the services
running until SIGINT or SIGTERM.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import click

from ..config import Config
from ..errors import KubernixError
from ..host import hostname as detect_hostname
from ..host import local_ip
from ..kubeconfig import KubeConfig
from ..orchestrator import Kubernix
from ..pki import Pki
from ..toolchain import Toolchain

logger = logging.getLogger(__name__)


async def wait_for_shutdown_signal() -> int:
    """Block until SIGINT or SIGTERM is received.

    Returns:
        The received signal number.
    """
    loop = asyncio.get_running_loop()
    received: asyncio.Future[int] = loop.create_future()

    def handle_signal(signum: int) -> None:
        if not received.done():
            received.set_result(signum)

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, handle_signal, signum)
    try:
        return await received
    finally:
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)


async def run_up(config: Config, ip: str, hostname: str) -> KubeConfig:
    """Execute the full up flow."""
    toolchain = Toolchain.discover()

    click.echo("\nStarting services\n")
    kubernix = await Kubernix.start(config, toolchain)
    click.echo(f"  ✓ crio: {kubernix.crio.endpoint}")
    click.echo(f"  ✓ etcd: {kubernix.etcd.client_url}")

    try:
        click.echo("\nCreating kubeconfigs\n")
        pki = Pki.from_dir(config.pki_dir)
        kube = await asyncio.to_thread(KubeConfig.build, config, pki, ip, hostname, toolchain)
        for role, path in kube.items().items():
            click.echo(f"  ✓ {role}: {path}")

        click.echo("\nkubernix is running. Press Ctrl+C to stop.\n")
        signum = await wait_for_shutdown_signal()
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
    except BaseException:
        try:
            await kubernix.stop()
        except KubernixError as e:
            logger.error("Unable to stop services: %s", e)
        raise

    click.echo("\nStopping services\n")
    await kubernix.stop()
    click.echo("  ✓ All services stopped")
    return kube


@click.command()
@click.option("--ip", default=None, help="Node IP address (default: autodetect)")
@click.option("--hostname", default=None, help="Node hostname (default: autodetect)")
@click.pass_context
def up(ctx: click.Context, ip: str | None, hostname: str | None) -> None:
    """Start the local control plane and run until interrupted.

    Examples:

        # Start with autodetected node address
        kubernix up

        # Use an explicit node address
        kubernix up --ip 192.168.1.10 --hostname node-1
    """
    config: Config = ctx.obj["config"]
    try:
        asyncio.run(run_up(config, ip or local_ip(), hostname or detect_hostname()))
    except KubernixError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)
