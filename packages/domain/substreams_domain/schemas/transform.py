"""Transform message - the form of a manifest handed to the runtime.

The transform message carries:
- modules: one entry per module with its kind, inputs and output
- modules_code: the code artifacts, deduplicated so that modules built from
  the same code file share one entry (referenced through code_index)

Only the message structure lives here; protobuf marshaling is left to the
transport layer.
"""

from typing import Annotated, Dict, List, Literal, Optional, Union
from pydantic import Field

from .base import DomainModel, CodeType, UpdatePolicy, ValueType, BlockNumber
from .modules import Module, ModuleInput
from .manifest import Manifest


# =============================================================================
# Code Table
# =============================================================================

class ModuleCode(DomainModel):
    """One entry of the deduplicated code table."""

    code_type: CodeType

    bytecode: bytes = Field(default=b"", repr=False)


# =============================================================================
# Module Kinds
# =============================================================================

class KindMap(DomainModel):
    kind_type: Literal["map"] = "map"

    output_type: str


class KindStore(DomainModel):
    kind_type: Literal["store"] = "store"

    update_policy: UpdatePolicy

    value_type: ValueType


ModuleKindMessage = Annotated[
    Union[KindMap, KindStore],
    Field(discriminator="kind_type")
]


class TransformOutput(DomainModel):
    type: str


# =============================================================================
# Modules
# =============================================================================

class TransformModule(DomainModel):
    """A module as seen by the runtime."""

    name: str

    code_index: int = Field(ge=0, description="Index into TransformManifest.modules_code")

    code_entrypoint: str

    kind: ModuleKindMessage

    inputs: List[ModuleInput] = Field(default_factory=list)

    output: Optional[TransformOutput] = None

    initial_block: BlockNumber = 0


class TransformManifest(DomainModel):
    spec_version: str = ""

    description: str = ""

    modules: List[TransformModule] = Field(default_factory=list)

    modules_code: List[ModuleCode] = Field(default_factory=list)


# =============================================================================
# Conversion
# =============================================================================

def module_to_transform(module: Module, code_index: int) -> TransformModule:
    """Convert one module, pointing it at `code_index` in the code table."""
    if module.is_store:
        kind = KindStore(update_policy=module.update_policy, value_type=module.value_type)
        output = None
    else:
        kind = KindMap(output_type=module.output_type)
        output = TransformOutput(type=module.output_type)

    return TransformModule(
        name=module.name,
        code_index=code_index,
        code_entrypoint=module.code.entrypoint,
        kind=kind,
        inputs=[inp.model_copy() for inp in module.inputs],
        output=output,
        initial_block=module.initial_block,
    )


def build_transform_manifest(manifest: Manifest) -> TransformManifest:
    """Build the transform message for a manifest.

    Modules sharing a code file (same Code.identity) share one code table
    entry; the table keeps first-seen order.

    Args:
        manifest: Validated manifest, with code contents loaded

    Returns:
        TransformManifest
    """
    message = TransformManifest(
        spec_version=manifest.spec_version,
        description=manifest.description,
    )

    code_indexes: Dict[str, int] = {}
    for module in manifest.modules:
        identity = module.code.identity
        if identity not in code_indexes:
            message.modules_code.append(
                ModuleCode(code_type=manifest.code_type, bytecode=module.code.content)
            )
            code_indexes[identity] = len(message.modules_code) - 1

        message.modules.append(module_to_transform(module, code_indexes[identity]))

    return message
