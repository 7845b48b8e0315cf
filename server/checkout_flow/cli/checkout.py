#!/usr/bin/env python3
"""
Operator CLI for the checkout flow
"""

import asyncio
import json
import sys
from typing import Optional

import click

from checkout_flow.core.config import get_settings
from checkout_flow.core.logging import configure_logging
from checkout_flow.integrations.payment_gateways import CheckoutError, MethodAdapterFactory
from checkout_flow.services.backend_client import BackendClient


@click.group()
def cli():
    """Checkout flow CLI tool"""
    pass


@cli.command()
@click.option('--token', envvar='CHECKOUT_AUTH_TOKEN', default=None, help='Bearer token for the backend')
@click.option('--json', 'as_json', is_flag=True, help='Print the catalogue as JSON')
def methods(token: Optional[str], as_json: bool):
    """List the backend's payment method catalogue"""
    settings = get_settings()
    configure_logging(settings.log_level, stream=sys.stderr, json=False)

    async def fetch():
        async with BackendClient(settings) as backend:
            return await backend.fetch_method_configs(auth_token=token)

    try:
        configs = asyncio.run(fetch())
    except CheckoutError as exc:
        raise click.ClickException(exc.error_message) from exc

    supported = set(MethodAdapterFactory.get_supported_methods())
    if as_json:
        click.echo(json.dumps(
            [
                {
                    "method": config.method.value,
                    "enabled": config.enabled,
                    "mode": config.mode.value,
                    "supported": config.method in supported,
                }
                for config in configs.values()
            ],
            indent=2,
        ))
        return

    if not configs:
        click.echo("No payment methods configured.")
        return

    for config in configs.values():
        state = "enabled" if config.enabled else "disabled"
        note = "" if config.method in supported else " (no adapter)"
        click.echo(f"{config.method.value:<12} {state:<9} {config.mode.value}{note}")


@cli.command()
def config():
    """Print the effective configuration"""
    click.echo(json.dumps(get_settings().redacted(), indent=2))


if __name__ == '__main__':
    cli()
