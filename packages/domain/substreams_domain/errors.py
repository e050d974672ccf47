"""Error taxonomy for manifest loading, graph building and store access.

Three families with different propagation rules:
- ManifestValidationError: bad manifest content, always fatal at load time
- GraphError: dangling references and cycles, always fatal at load time
- StorageError: raised per store while reading snapshots; the statistics
  collector isolates these per module instead of aborting the batch

CodeLoadError covers reading module code files, which is fatal because
signatures cannot be computed without the code bytes.
"""

from typing import Iterable, List, Optional


class SubstreamsError(Exception):
    """Base class for every error raised by this package."""


# =============================================================================
# Manifest Validation
# =============================================================================

class ManifestValidationError(SubstreamsError):
    """A module definition is invalid.

    Attributes:
        module: Name of the offending module (None for manifest-level fields)
        field: Manifest field that failed validation
    """

    def __init__(self, message: str, module: Optional[str] = None, field: Optional[str] = None):
        self.module = module
        self.field = field
        if module:
            message = f"module {module!r}: {message}"
        super().__init__(message)


class InvalidNameError(ManifestValidationError):
    """Module name does not match the identifier pattern."""


class MissingOutputTypeError(ManifestValidationError):
    """A map module has no output type."""


class UnknownKindError(ManifestValidationError):
    """Module kind is neither 'map' nor 'store'."""


class AmbiguousInputError(ManifestValidationError):
    """An input sets zero, or more than one, of 'source', 'store' and 'map'."""


class InvalidModeError(ManifestValidationError):
    """A store input mode is not one of 'get' or 'deltas'."""


class MissingFieldError(ManifestValidationError):
    """A store module is missing its update policy or value type."""


class InvalidPolicyCombinationError(ManifestValidationError):
    """Update policy and value type are not a legal pair."""


class InvalidCodeTypeError(ManifestValidationError):
    """Manifest 'codeType' is not supported."""


# =============================================================================
# Graph
# =============================================================================

class GraphError(SubstreamsError):
    """The module graph is malformed.

    Attributes:
        modules: Names of the modules involved
    """

    def __init__(self, message: str, modules: Iterable[str] = ()):
        self.modules: List[str] = list(modules)
        super().__init__(message)


class DanglingReferenceError(GraphError):
    """An input references a module absent from the manifest."""


class CyclicDependencyError(GraphError):
    """Modules depend on each other in a cycle."""


class UnknownModuleError(GraphError):
    """A graph query names a module that is not in the graph."""


class DuplicateModuleError(GraphError):
    """Two modules share the same name."""


# =============================================================================
# Storage
# =============================================================================

class StorageError(SubstreamsError):
    """Reading a store's persisted state failed.

    Attributes:
        module: Name of the store module being read
    """

    def __init__(self, message: str, module: Optional[str] = None):
        self.module = module
        super().__init__(message)


class EmptyStoreError(StorageError):
    """The store has no complete snapshot file."""


class ListingError(StorageError):
    """Snapshot files could not be listed."""


class LoadFailureError(StorageError):
    """The selected snapshot could not be read or deserialized."""


# =============================================================================
# Code Loading
# =============================================================================

class CodeLoadError(SubstreamsError):
    """A module code file is missing, unreadable or empty."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)
