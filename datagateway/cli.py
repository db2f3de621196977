"""Command line for running and inspecting the gateway."""

import json

import click

from .services.node_table import NodeTableError, get_node_table


@click.group()
def cli() -> None:
    """Read-only HTTP gateway for node data."""


@cli.command()
@click.option('--addr', default='127.0.0.1:8080', show_default=True,
              help='Address to listen on.')
def serve(addr: str) -> None:
    """Run the gateway with the development server."""
    from .factory import create_app

    host, _, port = addr.rpartition(':')
    if not host or not port.isdigit():
        raise click.BadParameter('must be of the form HOST:PORT',
                                 param_hint='--addr')
    app = create_app()
    click.echo(f'listening on {addr}')
    app.run(host=host, port=int(port), threaded=True)


@cli.command()
@click.argument('url')
@click.option('--timeout', default=10.0, show_default=True,
              help='Seconds to wait for the node listing.')
def nodes(url: str, timeout: float) -> None:
    """Show the policies that would be loaded from URL."""
    try:
        table = get_node_table(url, timeout=timeout)
    except NodeTableError as e:
        raise click.ClickException(str(e)) from e
    for node_id in sorted(table):
        policy = table[node_id]
        click.echo(json.dumps({
            'node_id': node_id,
            'restricted': policy.restricted,
            'commission_date': policy.commission_date.date().isoformat()
            if policy.commission_date else None,
            'retire_date': policy.retire_date.date().isoformat()
            if policy.retire_date else None,
        }))
