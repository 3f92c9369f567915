"""Abstract base check with an enforced lifecycle.

Every concrete check inherits from BaseCheck and implements only
``commands()``. The ``run_check()`` wrapper is **not overridable**; it
enforces the canonical lifecycle:

    compute_input_hash -> materialize workspace -> run commands
        -> compute_output_hash -> CheckResult

``run_check()`` never raises: any failure, including a missing tool or a
bad parameter, becomes a FAILED ``CheckResult`` carrying the check's name,
so one check failing never stops a sibling from running.
"""

from __future__ import annotations

import abc
import logging
import time
from typing import Any, ClassVar, final

from crateforge.core.artifact_store import ContentAddressedStore
from crateforge.core.build_config import build_fingerprint
from crateforge.core.cargo import CargoCommand
from crateforge.core.hasher import compute_input_hash, compute_output_hash
from crateforge.core.runner import CommandResult, CommandRunner
from crateforge.core.workspace import materialize
from crateforge.models.artifacts import DependencyCacheArtifact
from crateforge.models.build import BuildConfiguration
from crateforge.models.checks import CheckResult, CheckStatus

logger = logging.getLogger(__name__)


class CheckConfigurationError(ValueError):
    """Raised when a check is invoked with missing or invalid parameters."""


class BaseCheck(abc.ABC):
    """Abstract base for every registered check.

    Subclasses **must** implement:
        * ``check_name``: unique identifier (e.g. ``"clippy"``).
        * ``display_name``: human-readable name for reports.
        * ``commands(build_config, params)``: the cargo invocations.

    Subclasses **may** override:
        * ``required_tools``: executables the check needs on ``PATH``;
          the development environment is derived from these.
        * ``needs_dependency_cache``: ``False`` for checks that never
          compile anything.

    Subclasses **must not** override ``run_check()``.
    """

    required_tools: ClassVar[tuple[str, ...]] = ("cargo", "rustc")
    needs_dependency_cache: ClassVar[bool] = True

    @property
    @abc.abstractmethod
    def check_name(self) -> str:
        """Unique check identifier."""
        ...

    @property
    @abc.abstractmethod
    def display_name(self) -> str:
        """Human-readable name shown in reports."""
        ...

    @abc.abstractmethod
    def commands(
        self, build_config: BuildConfiguration, params: dict[str, Any]
    ) -> list[CargoCommand]:
        """Return the commands that make up this check, in order."""
        ...

    # ------------------------------------------------------------------
    # Lifecycle (not overridable)
    # ------------------------------------------------------------------

    @final
    def run_check(
        self,
        build_config: BuildConfiguration,
        dependency_cache: DependencyCacheArtifact | None,
        *,
        store: ContentAddressedStore,
        runner: CommandRunner,
        **params: Any,
    ) -> CheckResult:
        """Run the check and report its result.  **Do not override.**"""
        started = time.monotonic()
        fingerprint = build_fingerprint(build_config)
        cache_address = dependency_cache.content_address if dependency_cache else ""
        input_hash = compute_input_hash(self.check_name, {
            "build_fingerprint": fingerprint,
            "dependency_cache": cache_address,
            "params": {k: str(v) for k, v in sorted(params.items())},
        })
        logger.info("%s [%s] input_hash=%s", self.display_name, self.check_name, input_hash)

        command_lines: tuple[str, ...] = ()
        outputs: list[CommandResult] = []
        error = ""
        try:
            if self.needs_dependency_cache and dependency_cache is None:
                raise CheckConfigurationError(
                    f"{self.check_name} needs the dependency cache, which is unavailable"
                )
            commands = self.commands(build_config, dict(params))
            command_lines = tuple(c.command_line for c in commands)
            with materialize(
                store,
                build_config.source.content_address,
                dependency_cache if self.needs_dependency_cache else None,
                prefix=f"crateforge-{self.check_name}-",
            ) as ws:
                for command in commands:
                    result = runner.run(
                        command.argv,
                        cwd=ws.source_dir,
                        env={**command.env, **ws.env()},
                    )
                    outputs.append(result)
                    if not result.ok:
                        break
        except Exception as exc:
            logger.error("%s [%s] could not run: %s", self.display_name, self.check_name, exc)
            error = f"{self.check_name}: {exc}"

        passed = not error and bool(outputs) and all(r.ok for r in outputs)
        diagnostics = "\n\n".join(r.diagnostics() for r in outputs)
        output_hash = compute_output_hash(self.check_name, {
            "passed": passed,
            "returncodes": [r.returncode for r in outputs],
            "error": error,
        })
        if passed:
            logger.info("%s [%s] passed", self.display_name, self.check_name)
        else:
            logger.error("%s [%s] FAILED", self.display_name, self.check_name)

        return CheckResult(
            check_name=self.check_name,
            display_name=self.display_name,
            status=CheckStatus.PASSED if passed else CheckStatus.FAILED,
            build_fingerprint=fingerprint,
            dependency_cache_address=cache_address,
            commands=command_lines,
            diagnostics=diagnostics,
            error=error,
            input_hash=input_hash,
            output_hash=output_hash,
            duration_seconds=round(time.monotonic() - started, 3),
        )

    @final
    def unavailable(self, build_config: BuildConfiguration, reason: str) -> CheckResult:
        """A FAILED result for a check whose inputs could not be produced."""
        logger.error("%s [%s] not run: %s", self.display_name, self.check_name, reason)
        return CheckResult(
            check_name=self.check_name,
            display_name=self.display_name,
            status=CheckStatus.FAILED,
            build_fingerprint=build_fingerprint(build_config),
            error=f"{self.check_name}: {reason}",
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} check_name={self.check_name!r}>"
