"""Main CLI application module.

This module provides the main entry point for the Che installer CLI.

Command Groups:
- operator: Che operator install, update and delete
"""

import typer

from .commands import operator_app

# Create the main CLI application
app = typer.Typer(
    help="🛠️  Che Installer - Eclipse Che operator deployment tool",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(operator_app, name="operator", help="Che operator commands")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
