"""Configuration command for s3chunk CLI.

Commands:
- configure: Show or store default store settings
"""

from __future__ import annotations

import click

from s3chunk.client.cli.config import CONFIG_KEYS, get_config_file, load_config, save_config
from s3chunk.core.config import BACKENDS, StoreConfig


@click.command()
@click.option("--backend", type=click.Choice(BACKENDS), default=None, help="Store backend.")
@click.option("--endpoint-url", default=None, help="S3-compatible endpoint URL.")
@click.option("--region", default=None, help="Region name.")
@click.option("--profile", default=None, help="Credentials profile name.")
@click.option("--local-root", default=None, help="Root directory of the local backend.")
@click.option("--unset", multiple=True, type=click.Choice(CONFIG_KEYS), help="Remove a setting.")
def configure(
    backend: str | None,
    endpoint_url: str | None,
    region: str | None,
    profile: str | None,
    local_root: str | None,
    unset: tuple[str, ...],
) -> None:
    """Show or change the default store settings.

    Credentials are not stored here; the standard AWS credential chain
    (environment, ~/.aws/credentials, --profile) is used.
    """
    config = load_config()
    updates = {
        "backend": backend,
        "endpoint_url": endpoint_url,
        "region": region,
        "profile": profile,
        "local_root": local_root,
    }
    changed = False
    for key in unset:
        changed |= config.pop(key, None) is not None
    for key, value in updates.items():
        if value is not None:
            config[key] = value
            changed = True

    if changed:
        try:
            StoreConfig(**{k: v for k, v in config.items() if k in CONFIG_KEYS})
        except ValueError as e:
            raise click.BadParameter(str(e)) from e
        save_config(config)
        click.echo(f"Saved configuration to {get_config_file()}")

    for key in CONFIG_KEYS:
        click.echo(f"{key}: {config.get(key, '')}")
