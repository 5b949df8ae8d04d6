"""Main entry point for the promptaudit maintenance CLI.

Sets up the Typer application, wires the cache and result store from the
loaded configuration (Composition Root) and defines the maintenance
commands.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Dict, Optional

import typer
from rich.console import Console

# --- Infrastructure Layer ---
from promptaudit.infrastructure.cache.analysis_cache import AnalysisCache
from promptaudit.infrastructure.config.settings import (
    get_cache_dir,
    get_cache_ttl_seconds,
    get_config,
    get_results_dir,
    load_configuration,
)
from promptaudit.infrastructure.monitoring.logger_setup import setup_logging
from promptaudit.infrastructure.storage.results_store import PromptResultStore

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="promptaudit",
    help="Maintenance commands for the prompt analysis caches.",
    add_completion=False,
)
console = Console()


def create_dependencies() -> Dict[str, Any]:
    """Creates the cache and result store from the current configuration."""
    load_configuration()
    cache = AnalysisCache(cache_dir=get_cache_dir(), ttl_seconds=get_cache_ttl_seconds())
    results_store = PromptResultStore(results_dir=get_results_dir())
    logger.debug(f"Using cache dir {cache.l2_dir} and results dir {results_store.results_dir}")
    return {"cache": cache, "results_store": results_store}


# --- CLI Commands ---

@app.command(name="clear-cache")
def clear_cache_command():
    """Removes every entry from the batch analysis cache."""
    cache: AnalysisCache = create_dependencies()["cache"]
    asyncio.run(cache.clear())
    console.print(f"[green]Cleared analysis cache[/green] ({cache.l2_dir})")


@app.command(name="cleanup-cache")
def cleanup_cache_command():
    """Removes expired or unreadable batch cache entries."""
    cache: AnalysisCache = create_dependencies()["cache"]
    removed = asyncio.run(cache.cleanup_expired())
    console.print(f"Removed [bold]{removed}[/bold] expired cache entr{'y' if removed == 1 else 'ies'}")


@app.command(name="cleanup-results")
def cleanup_results_command(
    before: Annotated[
        str, typer.Option("--before", "-b", help="Delete result directories dated before YYYY-MM-DD.")
    ],
):
    """Deletes stored per-prompt results older than a date."""
    try:
        cutoff = datetime.strptime(before, "%Y-%m-%d").date()
    except ValueError:
        console.print(f"[red]Invalid date '{before}'. Expected YYYY-MM-DD.[/red]")
        raise typer.Exit(code=2)

    store: PromptResultStore = create_dependencies()["results_store"]
    deleted = asyncio.run(store.cleanup(cutoff))
    console.print(f"Deleted [bold]{deleted}[/bold] result director{'y' if deleted == 1 else 'ies'} before {cutoff}")


@app.callback()
def main_callback(
    log_level: Annotated[
        Optional[str], typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...).")
    ] = None,
    log_file: Annotated[Optional[Path], typer.Option("--log-file", help="Also write logs to this file.")] = None,
):
    """Configures logging before any command runs."""
    level = log_level or str(get_config("logging.level", "WARNING"))
    file_path = log_file or get_config("logging.file")
    setup_logging(log_level=level, log_file=str(file_path) if file_path else None)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
