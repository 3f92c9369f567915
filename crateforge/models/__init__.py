"""Crateforge data models: all Pydantic v2, all frozen (immutable)."""

from crateforge.models.artifacts import (
    ContentAddressedArtifact,
    DependencyCacheArtifact,
    DocumentationArtifact,
    PackageArtifact,
    SnapshotFile,
    SourceSnapshot,
    VersionedArchive,
)
from crateforge.models.build import BuildConfiguration
from crateforge.models.checks import CheckResult, CheckStatus
from crateforge.models.devshell import DevEnvironment
from crateforge.models.platforms import (
    PLATFORM_TABLE,
    LinkMode,
    NativeInput,
    PlatformKey,
    PlatformSpec,
    UnsupportedPlatformError,
    platform_spec,
)
from crateforge.models.waivers import AdvisoryWaiver, RiskClassification

__all__ = [
    # platforms
    "PlatformKey",
    "PlatformSpec",
    "NativeInput",
    "LinkMode",
    "PLATFORM_TABLE",
    "UnsupportedPlatformError",
    "platform_spec",
    # artifacts
    "ContentAddressedArtifact",
    "SnapshotFile",
    "SourceSnapshot",
    "DependencyCacheArtifact",
    "PackageArtifact",
    "DocumentationArtifact",
    "VersionedArchive",
    # build
    "BuildConfiguration",
    # checks
    "CheckStatus",
    "CheckResult",
    # devshell
    "DevEnvironment",
    # waivers
    "RiskClassification",
    "AdvisoryWaiver",
]
