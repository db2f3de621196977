"""Run the gateway command line."""

from .cli import cli

cli(prog_name='datagateway')
