"""Manifest - top-level entry point for a substreams package.

The Manifest ties together:
- Package metadata (spec version, description)
- Code packaging (codeType) and the start block shared by all modules
- The module list, validated and wired into a ModuleGraph

YAML decoding is a thin wrapper: load_manifest() reads the file, and
Manifest.from_dict() does all validation so that already-parsed input goes
through the same checks.

Example manifest:
    specVersion: v0.1.0
    description: ERC-20 balances
    codeType: wasm/rust-v1
    startBlock: 12287507
    protoFiles: [proto/erc20.proto]
    modules:
      - name: map_transfers
        kind: map
        code: {file: ./erc20.wasm}
        inputs: [{source: sf.ethereum.type.v2.Block}]
        output: {type: proto:erc20.v1.Transfers}
      - name: store_balances
        kind: store
        updatePolicy: sum
        valueType: bigint
        code: {file: ./erc20.wasm}
        inputs: [{map: map_transfers}]
"""

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import Field, PrivateAttr

from .base import DomainModel, BlockNumber, CodeType
from .modules import Module, normalize_module
from ..errors import CodeLoadError, InvalidCodeTypeError, ManifestValidationError

# Avoid circular import for type hints
if TYPE_CHECKING:
    from ..graph.base import ModuleGraph


# =============================================================================
# Manifest
# =============================================================================

class Manifest(DomainModel):
    """A validated substreams manifest."""

    spec_version: str = Field(default="", description="Manifest spec version")

    description: str = Field(default="", description="Human-readable description")

    code_type: CodeType = Field(description="Code packaging ('wasm/rust-v1' or 'native')")

    start_block: BlockNumber = Field(
        default=0,
        description="Default initial block for modules that do not set one"
    )

    proto_files: List[str] = Field(
        default_factory=list,
        description="Proto files declaring the module output types"
    )

    modules: List[Module] = Field(default_factory=list)

    _graph: Any = PrivateAttr(default=None)

    @property
    def graph(self) -> "ModuleGraph":
        """Module graph, built on first access."""
        if self._graph is None:
            self._graph = self.build_graph()
        return self._graph

    def build_graph(self, logger=None) -> "ModuleGraph":
        """Build and validate the module graph.

        Raises:
            GraphError: If references dangle, names repeat or modules form a cycle
        """
        from ..graph.base import ModuleGraph

        return ModuleGraph(self.modules, logger=logger)

    def get_module(self, name: str) -> Module:
        for module in self.modules:
            if module.name == name:
                return module
        raise KeyError(f"Module '{name}' not found in manifest. Available modules: {[m.name for m in self.modules]}")

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        base_dir: Optional[Union[str, Path]] = None,
        load_code: bool = True,
    ) -> "Manifest":
        """Validate a decoded manifest.

        Args:
            data: Decoded manifest (camelCase keys, as in YAML)
            base_dir: Directory code file paths are relative to
            load_code: Read code files into Code.content

        Returns:
            Manifest whose graph has been built and validated

        Raises:
            ManifestValidationError: On any invalid module or manifest field
            GraphError: On dangling references, duplicate names or cycles
            CodeLoadError: If a code file is missing or empty
        """
        if not isinstance(data, Mapping):
            raise ManifestValidationError("manifest must be a mapping", field="manifest")

        code_type = data.get("codeType")
        if code_type not in (CodeType.WASM_RUST_V1.value, CodeType.NATIVE.value):
            raise InvalidCodeTypeError(
                f"invalid value {code_type!r} for 'codeType'",
                field="codeType",
            )

        start_block = data.get("startBlock") or 0
        modules = [
            normalize_module(raw, initial_block=start_block)
            for raw in data.get("modules") or []
        ]

        manifest = cls(
            spec_version=data.get("specVersion") or "",
            description=data.get("description") or "",
            code_type=code_type,
            start_block=start_block,
            proto_files=list(data.get("protoFiles") or []),
            modules=modules,
        )

        # Graph errors must surface before any code is read or hashed
        manifest._graph = manifest.build_graph()

        if load_code:
            root = Path(base_dir) if base_dir is not None else Path.cwd()
            contents: Dict[str, bytes] = {}
            for module in manifest.modules:
                if not module.code.file:
                    continue
                if module.code.file not in contents:
                    contents[module.code.file] = load_code_file(root / module.code.file)
                module.code.content = contents[module.code.file]

        return manifest


# =============================================================================
# Loading
# =============================================================================

def load_code_file(path: Union[str, Path]) -> bytes:
    """Read a module code artifact.

    Raises:
        CodeLoadError: If the file cannot be read or is empty
    """
    path = Path(path)
    try:
        content = path.read_bytes()
    except OSError as exc:
        raise CodeLoadError(f"reading file {str(path)!r}: {exc}", path=str(path)) from exc
    if not content:
        raise CodeLoadError(f"reference code file empty: {path}", path=str(path))
    return content


def load_manifest(path: Union[str, Path], load_code: bool = True) -> Manifest:
    """Read and validate a manifest YAML file.

    Code file paths are resolved relative to the manifest's directory.

    Raises:
        CodeLoadError: If the manifest or a code file cannot be read
        ManifestValidationError: If the YAML is invalid or a module is invalid
        GraphError: If the module graph is invalid
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CodeLoadError(f"reading manifest {str(path)!r}: {exc}", path=str(path)) from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ManifestValidationError(f"decoding yaml: {exc}", field="manifest") from exc

    return Manifest.from_dict(data, base_dir=path.parent, load_code=load_code)
