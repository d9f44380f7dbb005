"""CLI commands for the storefront catalog cache.

Provides command-line interface using Typer:
- storefront serve: Run the API server
- storefront warm: Warm the cache once (deployment hook)

Usage:
    storefront --help
    storefront serve --port 8080
    storefront warm --max-pages 5
"""

import typer

from storefront.cli.serve import app as serve_app
from storefront.cli.warm import app as warm_app

# Main CLI application
app = typer.Typer(
    name="storefront",
    help="Storefront catalog cache",
    no_args_is_help=True,
)

app.add_typer(serve_app, name="serve")
app.add_typer(warm_app, name="warm")


@app.callback()
def callback() -> None:
    """Storefront catalog cache."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
