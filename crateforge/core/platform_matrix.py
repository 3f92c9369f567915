"""Platform Matrix — one pipeline per supported platform, keyed by PlatformKey.

Nothing here falls back from one platform to another: a consumer asks for
a platform by key and gets that platform's pipeline or an error.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import TypeVar

from crateforge.config import ForgeConfig
from crateforge.core.artifact_store import ContentAddressedStore
from crateforge.core.pipeline import Pipeline
from crateforge.core.runner import CommandRunner, SubprocessRunner
from crateforge.models.platforms import PlatformKey, UnsupportedPlatformError, platform_spec

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlatformMatrix:
    """Lazily instantiated pipelines for every platform in the configuration.

    All pipelines share one store (artifacts are content-addressed, so
    sharing is safe) and one runner.
    """

    def __init__(
        self,
        config: ForgeConfig | None = None,
        *,
        store: ContentAddressedStore | None = None,
        runner: CommandRunner | None = None,
        host: PlatformKey | None = None,
    ) -> None:
        self.config = config or ForgeConfig()
        self.store = store or ContentAddressedStore(self.config.store_path)
        self.runner = runner or SubprocessRunner()
        self._host = host
        self._platforms: tuple[PlatformKey, ...] = tuple(
            dict.fromkeys(platform_spec(p).key for p in self.config.platforms)
        )
        self._pipelines: dict[PlatformKey, Pipeline] = {}

    @property
    def platforms(self) -> tuple[PlatformKey, ...]:
        return self._platforms

    @property
    def host(self) -> PlatformKey:
        if self._host is None:
            self._host = PlatformKey.host()
        return self._host

    def select(self, platform: PlatformKey | str) -> Pipeline:
        """Return the pipeline for *platform*.

        Raises ``UnsupportedPlatformError`` if the platform is not in the
        matrix.
        """
        key = platform_spec(platform).key
        if key not in self._platforms:
            raise UnsupportedPlatformError(
                f"Platform {key.value} is not in the matrix "
                f"({[p.value for p in self._platforms]})"
            )
        if key not in self._pipelines:
            self._pipelines[key] = Pipeline(
                key, self.config, store=self.store, runner=self.runner, host=self.host
            )
        return self._pipelines[key]

    def host_pipeline(self) -> Pipeline:
        return self.select(self.host)

    def pipelines(self) -> dict[PlatformKey, Pipeline]:
        return {key: self.select(key) for key in self._platforms}

    def runnable(self) -> list[PlatformKey]:
        """Platforms whose toolchain steps can run on this host."""
        return [key for key in self._platforms if key == self.host]

    def collect(
        self,
        operation: Callable[[Pipeline], T],
        platforms: Iterable[PlatformKey | str] | None = None,
    ) -> dict[PlatformKey, T]:
        """Apply *operation* to each selected pipeline, keyed by platform.

        Defaults to the runnable platforms. Errors propagate; a platform
        never answers for another.
        """
        selected = (
            [platform_spec(p).key for p in platforms]
            if platforms is not None
            else self.runnable()
        )
        results: dict[PlatformKey, T] = {}
        for key in selected:
            logger.info("Running for %s", key.value)
            results[key] = operation(self.select(key))
        return results
