"""Substreams domain schemas.

This package contains all Pydantic models for the domain layer:
- Base types, enumerations and naming conventions
- Update-policy registry for store modules
- Module definitions and inputs
- Manifests and the transform message built from them
- Store statistics report models
- Run configuration

Usage:
    from substreams_domain.schemas import (
        Manifest, Module, StoreInput, MapInput, SourceInput,
        load_manifest, validate_update_policy, StoreStats
    )
"""

# Base types
from .base import (
    DomainModel,
    DomainEnum,
    ModuleKind,
    UpdatePolicy,
    ValueType,
    InputMode,
    CodeType,
    ModuleName,
    BlockNumber,
    MODULE_NAME_PATTERN,
    DEFAULT_MAP_ENTRYPOINT,
    DEFAULT_STORE_ENTRYPOINT,
)

# Update policies
from .policies import (
    LEGAL_COMBINATIONS,
    UPDATE_POLICY_VALUE_TYPES,
    is_legal_combination,
    validate_update_policy,
)

# Modules
from .modules import (
    Code,
    SourceInput,
    StoreInput,
    MapInput,
    ModuleInput,
    Module,
    parse_input,
    normalize_module,
)

# Manifest
from .manifest import (
    Manifest,
    load_manifest,
    load_code_file,
)

# Transform message
from .transform import (
    ModuleCode,
    KindMap,
    KindStore,
    TransformOutput,
    TransformModule,
    TransformManifest,
    build_transform_manifest,
)

# Statistics
from .stats import (
    BlockRange,
    StoreFileInfo,
    SizeStats,
    KeyStats,
    ValueStats,
    StoreStats,
)

# Configuration
from .config import (
    StoreStatsCFG,
    StatsReportCFG,
)

__all__ = [
    # Base types
    "DomainModel",
    "DomainEnum",
    "ModuleKind",
    "UpdatePolicy",
    "ValueType",
    "InputMode",
    "CodeType",
    "ModuleName",
    "BlockNumber",
    "MODULE_NAME_PATTERN",
    "DEFAULT_MAP_ENTRYPOINT",
    "DEFAULT_STORE_ENTRYPOINT",
    # Update policies
    "LEGAL_COMBINATIONS",
    "UPDATE_POLICY_VALUE_TYPES",
    "is_legal_combination",
    "validate_update_policy",
    # Modules
    "Code",
    "SourceInput",
    "StoreInput",
    "MapInput",
    "ModuleInput",
    "Module",
    "parse_input",
    "normalize_module",
    # Manifest
    "Manifest",
    "load_manifest",
    "load_code_file",
    # Transform message
    "ModuleCode",
    "KindMap",
    "KindStore",
    "TransformOutput",
    "TransformModule",
    "TransformManifest",
    "build_transform_manifest",
    # Statistics
    "BlockRange",
    "StoreFileInfo",
    "SizeStats",
    "KeyStats",
    "ValueStats",
    "StoreStats",
    # Configuration
    "StoreStatsCFG",
    "StatsReportCFG",
]
