"""Crateforge CLI: Typer-based command-line interface.

Provides the ``crateforge`` command with subcommands for building the
package, running checks, producing the documentation archive, reading the
manifest version and entering the development environment.

All output uses Rich for formatted terminal display.
"""
