"""CLI package for queue-cancel."""

from dotenv import load_dotenv

load_dotenv()

from .state import app, configure_logging  # noqa: E402

# Import subcommand modules so their @app.command() decorators register
from . import admin as _admin  # noqa: E402, F401
from . import commands as _commands  # noqa: E402, F401


def cli() -> None:
    """CLI entrypoint."""
    app(prog_name="queue-cancel")


__all__ = ["app", "cli", "configure_logging"]


if __name__ == "__main__":
    cli()
