"""Base classes and type system for substreams domain models.

This module provides the foundational types and base classes used
throughout the manifest, transform and statistics schemas.
"""

import re
from enum import Enum
from typing import Annotated
from pydantic import BaseModel, Field, ConfigDict

# =============================================================================
# Base Model
# =============================================================================

class DomainModel(BaseModel):
    """Base class for all domain models.

    Provides common configuration for all Pydantic models in the domain layer:
    - Validation on assignment for runtime safety
    - Enum value serialization (enum fields hold their string values)
    - Support for bytes and other arbitrary types
    """

    model_config = ConfigDict(
        frozen=False,  # Allow mutation for defaulted fields (entrypoints, modes)
        validate_assignment=True,  # Validate on field assignment
        use_enum_values=True,  # Use enum values in JSON
        arbitrary_types_allowed=True,
    )


# =============================================================================
# Enumerations
# =============================================================================

class DomainEnum(str, Enum):
    """String enum that formats as its value."""

    def __str__(self) -> str:
        return self.value


class ModuleKind(DomainEnum):
    """Kind of a pipeline module."""

    MAP = "map"
    STORE = "store"


class UpdatePolicy(DomainEnum):
    """Merge rule a store applies when a key is written more than once."""

    MAX = "max"
    MIN = "min"
    SUM = "sum"
    REPLACE = "replace"
    IGNORE = "ignore"


class ValueType(DomainEnum):
    """Value encoding held by a store."""

    BIGINT = "bigint"
    INT64 = "int64"
    BIGFLOAT = "bigfloat"
    FLOAT64 = "float64"
    BYTES = "bytes"
    STRING = "string"
    PROTO = "proto"


class InputMode(DomainEnum):
    """How a module reads another module's store."""

    GET = "get"
    DELTAS = "deltas"


class CodeType(DomainEnum):
    """Code packaging declared at manifest level."""

    WASM_RUST_V1 = "wasm/rust-v1"
    NATIVE = "native"


# =============================================================================
# Type Aliases - Identifiers and Blocks
# =============================================================================

MODULE_NAME_PATTERN = r'^[A-Za-z][A-Za-z0-9_]*$'
MODULE_NAME_REGEX = re.compile(MODULE_NAME_PATTERN)

ModuleName = Annotated[
    str,
    Field(
        pattern=MODULE_NAME_PATTERN,
        description="Module identifier (e.g., 'map_transfers', 'store_balances')"
    )
]

BlockNumber = Annotated[
    int,
    Field(ge=0, description="Block height (non-negative)")
]

DEFAULT_MAP_ENTRYPOINT = "map"
DEFAULT_STORE_ENTRYPOINT = "build_state"


# =============================================================================
# Naming Conventions
# =============================================================================
#
# Module names:
#   - "map_transfers" - map module extracting transfers from blocks
#   - "store_balances" - store module accumulating balances per account
#
# Input names (derived, never declared):
#   - "source:sf.ethereum.type.v2.Block" - raw block stream
#   - "map:map_transfers" - output of another map module
#   - "store:store_balances" - output of another store module
#
# =============================================================================
