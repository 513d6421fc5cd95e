"""CLI main entry point."""

import sys

import click

from .commands import check, kubeconfig, up
from .config import load_config
from .errors import ConfigError
from .shared.logging import configure_logging


@click.group()
@click.option("-c", "--config", "config_path", type=click.Path(), help="Config file path")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log level (default: from config, else info)",
)
@click.option("--json-logs", is_flag=True, help="Log as JSON lines")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str | None, json_logs: bool) -> None:
    """Run a local single-node Kubernetes control plane."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    configure_logging(level=log_level or config.log.level, json_output=json_logs)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


cli.add_command(up)
cli.add_command(check)
cli.add_command(kubeconfig)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
