"""
CLI interface for applog.

Streams application logs from the platform to the terminal.
"""

import logging
import sys
from typing import Optional

import requests
import typer
import yaml
from rich.console import Console
from rich.markup import escape

from applog.client.http import LogClient, LogQuery, LogRequestError
from applog.config.loader import APP_ENV_VAR, ClientConfig, load_client_config
from applog.core.formatter import LogFormatter
from applog.core.stream import stream_logs
from applog.logger_config import setup_logger

app = typer.Typer()
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """applog CLI."""
    if ctx.invoked_subcommand is None:
        console.print("applog - Use --help to see available commands")


def _resolve_app(app_name: Optional[str], config: ClientConfig) -> str:
    """Pick the app from --app, falling back to the configured default."""
    resolved = app_name or config.default_app
    if not resolved:
        raise ValueError(
            f"No app given. Use --app, set ${APP_ENV_VAR} or 'default_app' in the config file"
        )
    return resolved


@app.command("app-log")
def app_log(
    app_name: Optional[str] = typer.Option(
        None,
        "--app",
        "-a",
        help="The name of the app."
    ),
    lines: int = typer.Option(
        10,
        "--lines",
        "-l",
        help="The number of log lines to display"
    ),
    source: Optional[str] = typer.Option(
        None,
        "--source",
        "-s",
        help="The log from the given source"
    ),
    unit: Optional[str] = typer.Option(
        None,
        "--unit",
        "-u",
        help="The log from the given unit"
    ),
    follow: bool = typer.Option(
        False,
        "--follow",
        "-f",
        help="Follow logs"
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colorized prefixes"
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the YAML config file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Print debug logs on stderr"
    )
):
    """
    Shows log entries for an application.

    These logs include everything the application sends to stdout and
    stderr, alongside logs from the platform itself (deployments,
    restarts, etc.)

    --source filters by log source (e.g. app, api) and --unit by unit,
    which helps when the application has several units. --follow keeps
    the connection open and prints new entries as they occur.
    """
    setup_logger(level=logging.DEBUG if verbose else logging.WARNING)
    out = sys.stdout
    try:
        config = load_client_config(config_path)
        query = LogQuery(
            app=_resolve_app(app_name, config),
            lines=lines,
            source=source,
            unit=unit,
            follow=follow
        )
        formatter = LogFormatter(color=config.color and not no_color and out.isatty())

        client = LogClient(config)
        with client.open_log_stream(query) as stream:
            outcome = stream_logs(stream, out, formatter)
        logger.debug("Displayed %d records", outcome.records_written)
        sys.exit(EXIT_CODE_OK)

    except KeyboardInterrupt:
        sys.exit(EXIT_CODE_OK)
    except LogRequestError as e:
        err_console.print(f"[red]Error:[/] {escape(str(e))} (HTTP {e.status_code})", highlight=False)
        sys.exit(EXIT_CODE_FAIL)
    except requests.RequestException as e:
        err_console.print(f"[red]Error:[/] {escape(str(e))}", highlight=False)
        sys.exit(EXIT_CODE_FAIL)
    except (ValueError, FileNotFoundError, yaml.YAMLError) as e:
        err_console.print(f"[red]Error:[/] {escape(str(e))}", highlight=False)
        sys.exit(EXIT_CODE_FAIL)


if __name__ == "__main__":
    app()
