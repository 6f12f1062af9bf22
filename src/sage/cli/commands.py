"""
CLI commands for Sage.

Main entry point: `sage` starts an interactive console backed by a Python kernel.
"""

import sys

import click
from dotenv import load_dotenv
from rich.console import Console

from sage.cli.interactive import InteractiveSession
from sage.config import Config
from sage.kernel.manager import KernelManager
from sage.utils.logger import get_sink


@click.command()
@click.option(
    "--python",
    "python_path",
    default=None,
    help="Python interpreter to run code in (default: $SAGE_PYTHON or this interpreter)",
)
@click.option(
    "--timeout",
    default=None,
    type=float,
    help="Seconds to wait for an execution before giving up (default: no limit)",
)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Enable file logging at this level",
)
@click.option("--log-dir", default=None, help="Directory for log files (default: logs/YYYY-MM-DD)")
@click.option("--json-logs", is_flag=True, help="Write logs as JSON lines")
def main(python_path, timeout, log_level, log_dir, json_logs):
    """
    Sage - Python console with namespace-aware autocomplete

    Usage:
        sage
        sage --python /usr/bin/python3.12
        sage --log-level DEBUG --json-logs
    """
    load_dotenv()

    config = Config()
    if python_path:
        config.python_path = python_path
    if timeout is not None:
        config.execute_timeout = timeout if timeout > 0 else None
    if log_level:
        config.log_level = log_level.upper()
        config.enable_logging = True
    if log_dir:
        config.log_dir = log_dir
        config.enable_logging = True
    if json_logs:
        config.log_json = True

    sink = get_sink(config)
    manager = KernelManager(config, sink=sink)
    console = Console()

    session = InteractiveSession(manager, config, console=console, sink=sink)
    try:
        session.start()
    finally:
        manager.shutdown()

    sys.exit(0)


if __name__ == "__main__":
    main()
