"""Check Registry — maps check_name to check class.

Usage::

    from crateforge.checks import CHECK_REGISTRY, get_check

    check = get_check("clippy")
    result = check.run_check(build_config, deps, store=store, runner=runner)

Registering a new check here is all it takes for the development
environment to pick up its tools.
"""

from __future__ import annotations

from crateforge.checks.audit import AuditCheck
from crateforge.checks.base import BaseCheck, CheckConfigurationError
from crateforge.checks.clippy import ClippyCheck
from crateforge.checks.fmt import FmtCheck
from crateforge.checks.nextest import TestCheck
from crateforge.checks.rustdoc import RustdocCheck

# ---------------------------------------------------------------------------
# Check registry: check_name -> check class
# ---------------------------------------------------------------------------

CHECK_REGISTRY: dict[str, type[BaseCheck]] = {
    "tests": TestCheck,
    "clippy": ClippyCheck,
    "rustdoc": RustdocCheck,
    "fmt": FmtCheck,
    "audit": AuditCheck,
}

# Report order; execution order carries no meaning.
CHECK_ORDER: list[str] = list(CHECK_REGISTRY)


def get_check(check_name: str) -> BaseCheck:
    """Instantiate and return a check by its ``check_name``.

    Raises ``KeyError`` if the check_name is not registered.
    """
    try:
        cls = CHECK_REGISTRY[check_name]
    except KeyError:
        raise KeyError(
            f"Unknown check {check_name!r}. "
            f"Registered checks: {sorted(CHECK_REGISTRY.keys())}"
        ) from None
    return cls()


__all__ = [
    "BaseCheck",
    "CheckConfigurationError",
    "CHECK_REGISTRY",
    "CHECK_ORDER",
    "get_check",
    "TestCheck",
    "ClippyCheck",
    "RustdocCheck",
    "FmtCheck",
    "AuditCheck",
]
