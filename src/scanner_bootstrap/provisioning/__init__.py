"""
Provisioning module - Java runtime and scanner engine retrieval.
"""

from .artifacts import ArchivedArtifact, PlainArtifact, ProvisionedArtifact
from .metadata import EngineMetadata, JreMetadata, ResourceMetadata
from .orchestrator import (
    API_PATH_ENGINE,
    API_PATH_JRE,
    ArtifactDownloader,
    JreCacheHit,
    ProvisioningOrchestrator,
    ResolvedJava,
)


__all__ = [
    # Orchestration
    "ProvisioningOrchestrator",
    "ArtifactDownloader",
    "ResolvedJava",
    "JreCacheHit",
    "API_PATH_JRE",
    "API_PATH_ENGINE",
    # Artifacts
    "PlainArtifact",
    "ArchivedArtifact",
    "ProvisionedArtifact",
    # Metadata
    "ResourceMetadata",
    "JreMetadata",
    "EngineMetadata",
]
