"""Module definitions and their load-time normalization.

A module is one stage of the transform pipeline:
- map: stateless transform, declares an output type
- store: stateful accumulator, declares an update policy and value type

Inputs are a tagged union over the three things a module can read from:
- SourceInput: an external stream (e.g., raw blocks), a graph root
- StoreInput: another store module's state, read as 'get' or 'deltas'
- MapInput: another map module's output

Raw manifest entries go through normalize_module(), which validates the
definition and fills in defaults (entrypoint, store input mode).
"""

from typing import Annotated, Any, List, Literal, Mapping, Optional, Union
from pydantic import Field, ValidationError, model_validator

from .base import (
    DomainModel,
    ModuleKind,
    ModuleName,
    BlockNumber,
    UpdatePolicy,
    ValueType,
    InputMode,
    MODULE_NAME_PATTERN,
    MODULE_NAME_REGEX,
    DEFAULT_MAP_ENTRYPOINT,
    DEFAULT_STORE_ENTRYPOINT,
)
from .policies import validate_update_policy
from ..errors import (
    AmbiguousInputError,
    InvalidModeError,
    InvalidNameError,
    ManifestValidationError,
    MissingOutputTypeError,
    UnknownKindError,
)


# =============================================================================
# Code
# =============================================================================

class Code(DomainModel):
    """Code reference of a module.

    Either `file` (a compiled artifact, loaded into `content`) or `native`
    (a symbol resolved by the runtime) identifies the code.
    """

    file: Optional[str] = Field(
        default=None,
        description="Path to the code artifact, relative to the manifest"
    )

    native: Optional[str] = Field(
        default=None,
        description="Native symbol name when codeType is 'native'"
    )

    content: bytes = Field(
        default=b"",
        repr=False,
        description="Raw code bytes loaded from `file`"
    )

    entrypoint: str = Field(
        default="",
        description="Function invoked by the runtime"
    )

    @property
    def identity(self) -> str:
        """Key identifying the code artifact shared between modules."""
        return self.file or self.native or ""


# =============================================================================
# Inputs
# =============================================================================

class SourceInput(DomainModel):
    """Input read from an external stream."""

    input_type: Literal["source"] = "source"

    source: str = Field(
        min_length=1,
        description="Source type (e.g., 'sf.ethereum.type.v2.Block')"
    )

    @property
    def name(self) -> str:
        return f"source:{self.source}"

    @property
    def module_name(self) -> Optional[str]:
        return None


class StoreInput(DomainModel):
    """Input read from another store module."""

    input_type: Literal["store"] = "store"

    store: ModuleName = Field(description="Name of the store module read")

    mode: InputMode = Field(
        default=InputMode.GET,
        validate_default=True,
        description="'get' reads the state, 'deltas' reads the per-block changes"
    )

    @property
    def name(self) -> str:
        return f"store:{self.store}"

    @property
    def module_name(self) -> Optional[str]:
        return self.store


class MapInput(DomainModel):
    """Input read from another map module."""

    input_type: Literal["map"] = "map"

    map: ModuleName = Field(description="Name of the map module read")

    @property
    def name(self) -> str:
        return f"map:{self.map}"

    @property
    def module_name(self) -> Optional[str]:
        return self.map


ModuleInput = Annotated[
    Union[SourceInput, StoreInput, MapInput],
    Field(discriminator="input_type")
]


# =============================================================================
# Module
# =============================================================================

class Module(DomainModel):
    """One pipeline stage.

    Kind-specific output contract:
        map:   output_type (e.g., 'proto:eth.transfers.v1.Transfers')
        store: update_policy + value_type (see policies.py)

    Example:
        Module(
            name="store_balances",
            kind="store",
            update_policy="sum",
            value_type="bigint",
            inputs=[MapInput(map="map_transfers")],
        )
    """

    name: ModuleName

    kind: ModuleKind

    code: Code = Field(default_factory=Code)

    inputs: List[ModuleInput] = Field(default_factory=list)

    output_type: Optional[str] = Field(
        default=None,
        description="Output type of a map module"
    )

    update_policy: Optional[UpdatePolicy] = Field(
        default=None,
        description="Merge rule of a store module"
    )

    value_type: Optional[ValueType] = Field(
        default=None,
        description="Value encoding of a store module"
    )

    initial_block: BlockNumber = Field(
        default=0,
        description="First block the module processes"
    )

    @property
    def is_store(self) -> bool:
        return self.kind == ModuleKind.STORE

    @property
    def is_map(self) -> bool:
        return self.kind == ModuleKind.MAP

    @model_validator(mode='after')
    def validate_kind_contract(self):
        """Store modules need a legal policy/type pair, map modules an output type."""
        if self.kind == ModuleKind.STORE:
            validate_update_policy(self.update_policy, self.value_type, module=self.name)
        elif not self.output_type:
            raise MissingOutputTypeError(
                "missing 'output.type' for kind 'map'",
                module=self.name,
                field="output.type",
            )
        return self

    def dependencies(self) -> List[str]:
        """Names of the modules this module reads from, in declaration order."""
        return [inp.module_name for inp in self.inputs if inp.module_name is not None]

    def __str__(self) -> str:
        return self.name


# =============================================================================
# Normalization
# =============================================================================

_INPUT_KEYS = ("source", "store", "map")


def parse_input(raw: Mapping[str, Any], module: Optional[str] = None) -> Union[SourceInput, StoreInput, MapInput]:
    """Parse one raw manifest input into its tagged variant.

    Args:
        raw: Mapping with exactly one of 'source', 'store' or 'map' set,
            plus an optional 'mode' for store inputs
        module: Owning module name, used in error messages

    Returns:
        SourceInput, StoreInput or MapInput

    Raises:
        AmbiguousInputError: If zero or several reference kinds are set
        InvalidModeError: If 'mode' is invalid or set on a non-store input
    """
    if not isinstance(raw, Mapping):
        raise AmbiguousInputError(
            f"input {raw!r} must be a mapping with one of 'map', 'store' or 'source'",
            module=module,
            field="inputs",
        )

    present = [key for key in _INPUT_KEYS if raw.get(key)]
    if len(present) != 1:
        raise AmbiguousInputError(
            "one, and only one of 'map', 'store' or 'source' must be specified",
            module=module,
            field="inputs",
        )

    kind = present[0]
    reference = raw[kind]
    mode = raw.get("mode")

    if kind != "store" and mode:
        raise InvalidModeError(
            f"input '{kind}:{reference}': 'mode' is only valid on store inputs",
            module=module,
            field="mode",
        )

    if kind == "store":
        mode = mode or InputMode.GET.value
        if mode not in (InputMode.GET.value, InputMode.DELTAS.value):
            raise InvalidModeError(
                f"input 'store:{reference}': 'mode' parameter must be one of: 'get', 'deltas'",
                module=module,
                field="mode",
            )

    try:
        if kind == "source":
            return SourceInput(source=reference)
        if kind == "map":
            return MapInput(map=reference)
        return StoreInput(store=reference, mode=mode)
    except ValidationError as exc:
        raise ManifestValidationError(
            f"input '{kind}:{reference}': {exc}",
            module=module,
            field="inputs",
        ) from exc


def normalize_module(raw: Mapping[str, Any], initial_block: int = 0) -> Module:
    """Validate a raw manifest module and build its normalized form.

    Defaults filled in:
        - map entrypoint: "map"
        - store entrypoint: "build_state"
        - store input mode: "get"
        - initial block: `initial_block` unless the module sets 'initialBlock'

    Args:
        raw: Module mapping as found in the manifest YAML
        initial_block: Manifest-level start block

    Returns:
        Validated Module

    Raises:
        InvalidNameError: If the name does not match the identifier pattern
        MissingOutputTypeError: If a map module has no output type
        MissingFieldError: If a store module lacks policy or value type
        InvalidPolicyCombinationError: If the store policy/type pair is illegal
        UnknownKindError: If kind is not 'map' or 'store'
        AmbiguousInputError: If an input is not exactly one reference kind
        InvalidModeError: If a store input mode is invalid
        ManifestValidationError: If the entry, its code or its output is not a mapping
    """
    if not isinstance(raw, Mapping):
        raise ManifestValidationError(f"module entry {raw!r} must be a mapping", field="modules")

    name = raw.get("name") or ""
    if not isinstance(name, str) or not MODULE_NAME_REGEX.fullmatch(name):
        raise InvalidNameError(
            f"module name {name!r} does not match regex {MODULE_NAME_PATTERN}",
            module=None,
            field="name",
        )

    output = raw.get("output") or {}
    if not isinstance(output, Mapping):
        raise ManifestValidationError(
            f"'output' must be a mapping, got {output!r}",
            module=name,
            field="output",
        )

    code = raw.get("code") or {}
    if not isinstance(code, Mapping):
        raise ManifestValidationError(
            f"'code' must be a mapping, got {code!r}",
            module=name,
            field="code",
        )
    code = dict(code)
    kind = raw.get("kind")
    fields = {}

    if kind == ModuleKind.MAP.value:
        output_type = output.get("type")
        if not output_type:
            raise MissingOutputTypeError(
                "missing 'output.type' for kind 'map'",
                module=name,
                field="output.type",
            )
        fields["output_type"] = output_type
        code["entrypoint"] = code.get("entrypoint") or DEFAULT_MAP_ENTRYPOINT
    elif kind == ModuleKind.STORE.value:
        update_policy = raw.get("updatePolicy") or output.get("updatePolicy")
        value_type = raw.get("valueType") or output.get("valueType")
        validate_update_policy(update_policy, value_type, module=name)
        fields["update_policy"] = update_policy
        fields["value_type"] = value_type
        code["entrypoint"] = code.get("entrypoint") or DEFAULT_STORE_ENTRYPOINT
    else:
        raise UnknownKindError(f"invalid kind {kind!r}", module=name, field="kind")

    inputs = [parse_input(item, module=name) for item in raw.get("inputs") or []]

    module_initial_block = raw.get("initialBlock")
    if module_initial_block is None:
        module_initial_block = initial_block

    try:
        return Module(
            name=name,
            kind=kind,
            code=Code(
                file=code.get("file"),
                native=code.get("native"),
                entrypoint=code["entrypoint"],
            ),
            inputs=inputs,
            initial_block=module_initial_block,
            **fields,
        )
    except ValidationError as exc:
        raise ManifestValidationError(str(exc), module=name) from exc
