from __future__ import annotations

import typer
import uvicorn

from .app import create_app
from .config import get_settings

cli = typer.Typer(help="KLive admin gateway entrypoint")


@cli.callback()
def main() -> None:
    """Backend-for-frontend gateway for the knowledge-base service."""


@cli.command()
def serve(host: str = "0.0.0.0", port: int = 3000) -> None:
    """Start the gateway using uvicorn."""

    settings = get_settings()
    app = create_app(settings)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower(), lifespan="on")


if __name__ == "__main__":
    cli()
