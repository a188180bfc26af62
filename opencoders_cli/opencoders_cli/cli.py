"""CLI entry point for opencoders.

Loads configuration, then hands the terminal to the control loop until
the user quits.
"""

from __future__ import annotations

import asyncio
import sys

import click
from opencoders_sdk._config import ClientSettings

from opencoders_cli import __version__
from opencoders_cli.config import ConfigManager, OpencodersConfig
from opencoders_cli.logging import LogEvent, configure_logging, configure_tui_logging, get_logger, reset_logging

logger = get_logger(__name__)


def apply_overrides(config: OpencodersConfig, inline: bool | None) -> OpencodersConfig:
    """Apply command line flags on top of the loaded configuration."""
    if inline is None:
        return config
    display = config.display.model_copy(update={"inline": inline})
    return config.model_copy(update={"display": display})


# =============================================================================
# CLI Entry Point
# =============================================================================


@click.command()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.option("--inline/--fullscreen", default=None, help="Render below the prompt or take over the screen")
@click.option("--server-url", default=None, help="OpenCode server URL (skips discovery)")
@click.version_option(version=__version__, prog_name="opencoders")
def cli(verbose: bool, inline: bool | None, server_url: str | None) -> None:
    """opencoders - terminal client for OpenCode.

    \b
    Keys:
      Enter        send message
      Tab          cycle mode
      Esc Esc      abort the running response
      Ctrl+X l     pick a session
      Ctrl+X n     new session
      Ctrl+X r     reconnect the event stream
      Ctrl+X Tab   toggle inline / fullscreen
      Ctrl+X + -   grow or shrink the inline view
      Ctrl+U       clear the input
      Ctrl+C Ctrl+C quit
    """
    configure_logging(verbose=verbose)
    logger.info("Starting opencoders v%s", __version__)

    try:
        config = apply_overrides(ConfigManager().load(), inline)
        settings = ClientSettings() if server_url is None else ClientSettings(server_url=server_url)
        asyncio.run(_run_tui(config, settings, verbose))
    except KeyboardInterrupt:
        click.echo("\nGoodbye!")
        sys.exit(130)
    except Exception as e:
        logger.exception("Fatal error")
        click.echo()
        click.echo(click.style("=" * 60, fg="red"))
        click.echo(click.style("FATAL ERROR", fg="red", bold=True))
        click.echo(click.style("=" * 60, fg="red"))
        click.echo()
        click.echo(f"Error type: {type(e).__name__}")
        click.echo(f"Message: {e}")
        click.echo()
        if verbose:
            import traceback

            click.echo(click.style("Traceback:", fg="yellow"))
            click.echo(traceback.format_exc())
        else:
            click.echo("Run with --verbose flag for full traceback.")
        click.echo()
        click.echo("Common issues:")
        click.echo("  - No OpenCode server running (start one with `opencode serve`)")
        click.echo("  - OPENCODE_SERVER_URL points to the wrong host or port")
        click.echo("  - Not running in an interactive terminal")
        sys.exit(1)


async def _run_tui(config: OpencodersConfig, settings: ClientSettings, verbose: bool) -> None:
    """Run the control loop with log output captured for the status area."""
    from opencoders_cli.app.program import Program
    from opencoders_cli.terminal import RichTerminal

    log_queue: asyncio.Queue[LogEvent] = asyncio.Queue()
    configure_tui_logging(log_queue)
    terminal = RichTerminal(
        inline=config.display.inline,
        height=config.display.inline_height,
        mouse=config.display.mouse,
    )
    try:
        await Program(config, terminal, settings=settings, log_queue=log_queue).run()
    finally:
        reset_logging()
        configure_logging(verbose=verbose)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
