"""
CLI Commands for Chainshell.

Provides the process entry point using the Click framework. Without
arguments the interactive shell starts; trailing words run a single
shell command and exit.

    chainshell                      # interactive session
    chainshell --central            # run as the central node
    chainshell wallet list          # one-shot command
    chainshell config --init        # write a default config file

Author: Chainshell Team
License: MIT
"""

from typing import Optional, Sequence
from pathlib import Path
import sys

import click
import yaml
from loguru import logger

from ..config import ShellConfig, load_config
from ..monitoring.logging_config import configure_logging
from .session import EXIT_INTERRUPTED, EXIT_OK, EXIT_STARTUP_FAILURE, run_session

VERSION = "0.1.0"
DEFAULT_CONFIG_FILE = "chainshell.yaml"


class ShellGroup(click.Group):
    """Group that hands unknown words to ``run`` as a one-shot shell command."""

    def resolve_command(self, ctx, args):
        if args and args[0] not in self.commands:
            return "run", self.commands["run"], args
        return super().resolve_command(ctx, args)


def _load(options: dict) -> ShellConfig:
    config = load_config(options.get("config_path"))
    if options.get("data_dir"):
        config.storage.data_dir = Path(options["data_dir"]).expanduser()
    if options.get("central"):
        config.node.node_type = "central"
    return config


def _start(options: dict, words: Sequence[str]) -> int:
    try:
        config = _load(options)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        return EXIT_STARTUP_FAILURE

    configure_logging(
        log_level=config.logging.log_level,
        log_file=config.log_file,
        rotation=config.logging.rotation,
        retention=config.logging.retention,
        verbose=options.get("verbose", False),
    )
    logger.info(f"Starting chainshell {VERSION}: node_type={config.node.node_type}, data_dir={config.storage.data_dir}")
    return run_session(config, command=words)


# Main CLI group
@click.group(cls=ShellGroup, invoke_without_command=True)
@click.version_option(version=VERSION)
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="Config file path")
@click.option("--data-dir", type=click.Path(file_okay=False), help="Directory for chain data, keys and logs")
@click.option("--central", is_flag=True, help="Run as the central node")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx, config_path: Optional[str], data_dir: Optional[str], central: bool, verbose: bool):
    """
    Chainshell - interactive blockchain node shell.

    Manage wallets, send coins, mine blocks and inspect peers from one prompt.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["data_dir"] = data_dir
    ctx.obj["central"] = central
    ctx.obj["verbose"] = verbose

    if ctx.invoked_subcommand is None:
        ctx.exit(_start(ctx.obj, ()))


# One-shot command
@cli.command(context_settings={"ignore_unknown_options": True, "allow_extra_args": True})
@click.argument("words", nargs=-1, type=click.UNPROCESSED, required=True)
@click.pass_context
def run(ctx, words: Sequence[str]):
    """Run a single shell command (e.g. 'wallet list') and exit."""
    ctx.exit(_start(ctx.obj, list(words) + list(ctx.args)))


# Config command
@cli.command()
@click.option("--init", is_flag=True, help="Initialize default config")
@click.option("--validate", is_flag=True, help="Validate config file")
@click.option("--show", is_flag=True, help="Show current config")
@click.pass_context
def config(ctx, init: bool, validate: bool, show: bool):
    """Manage configuration files."""
    config_file = Path(ctx.obj.get("config_path") or DEFAULT_CONFIG_FILE)

    if init:
        logger.info("Initializing default configuration")
        if config_file.exists():
            logger.error(f"Config already exists: {config_file}")
            ctx.exit(EXIT_STARTUP_FAILURE)
        try:
            ShellConfig().to_yaml(config_file)
            logger.success(f"Config created: {config_file}")
        except OSError as e:
            logger.error(f"Config initialization failed: {e}")
            ctx.exit(EXIT_STARTUP_FAILURE)

    elif validate:
        logger.info(f"Validating config: {config_file}")
        try:
            load_config(config_file)
            logger.success("Config is valid")
        except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Config validation failed: {e}")
            ctx.exit(EXIT_STARTUP_FAILURE)

    elif show:
        try:
            loaded = _load(ctx.obj) if config_file.exists() else _load({**ctx.obj, "config_path": None})
            click.echo(yaml.dump(loaded.model_dump(mode="json"), default_flow_style=False, sort_keys=False))
        except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Failed to show config: {e}")
            ctx.exit(EXIT_STARTUP_FAILURE)

    else:
        click.echo("Use --init, --validate, or --show")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the CLI and return the process exit status.

    Returns:
        0 on quit, 1 on a fatal startup error, 130 after an interrupt
    """
    try:
        result = cli.main(args=argv, prog_name="chainshell", standalone_mode=False)
    except click.exceptions.Abort:
        return EXIT_INTERRUPTED
    except click.ClickException as e:
        e.show()
        return e.exit_code
    return result if isinstance(result, int) else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
