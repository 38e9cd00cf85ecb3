"""
Domain models — Pydantic types for the package core.

    from runtimekit.core.models import PackageRecord, SearchResult, Ecosystem
"""

from runtimekit.core.models.package import (
    DependencyNode,
    Ecosystem,
    FailedUpdate,
    InstallResult,
    PackageRecord,
    PackageStatus,
    RegistryInfo,
    RuntimeStatus,
    SearchOptions,
    SearchResult,
    ServiceStatus,
    SkippedUpdate,
    Stats,
    UpdateCandidate,
    UpdateReport,
)
from runtimekit.core.models.project import (
    DependencyDecl,
    DetectionRule,
    DetectionSettings,
    FrameworkBonus,
    PackagesConfig,
    ProjectConfig,
    ServiceDecl,
    Settings,
)

__all__ = [
    "DependencyDecl",
    "DependencyNode",
    "DetectionRule",
    "DetectionSettings",
    "Ecosystem",
    "FailedUpdate",
    "FrameworkBonus",
    "InstallResult",
    "PackageRecord",
    "PackageStatus",
    "PackagesConfig",
    "ProjectConfig",
    "RegistryInfo",
    "RuntimeStatus",
    "SearchOptions",
    "SearchResult",
    "ServiceDecl",
    "ServiceStatus",
    "Settings",
    "SkippedUpdate",
    "Stats",
    "UpdateCandidate",
    "UpdateReport",
]
