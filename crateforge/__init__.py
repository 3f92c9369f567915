"""Crateforge: dependency-cached, multi-check build and release pipeline.

Builds a Cargo package's dependencies once and reuses that layer across
the test, lint, documentation-lint, format and audit checks, the package
build and the documentation build. The documentation ships as an archive
named after the version read from cargo metadata.
"""

__version__ = "0.1.0"

from crateforge.core.pipeline import Pipeline
from crateforge.core.platform_matrix import PlatformMatrix
from crateforge.cli.app import app as cli

__all__ = ["Pipeline", "PlatformMatrix", "cli", "__version__"]
