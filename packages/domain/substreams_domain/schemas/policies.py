"""Update-policy registry.

A store module declares how repeated writes to the same key are merged
(its update policy) and how values are encoded (its value type). Only some
pairs make sense: numeric merges need numeric values, while replace/ignore
work on opaque payloads.

Legal combinations:
    max / min / sum     x  bigint, int64, bigfloat, float64
    replace / ignore    x  bytes, string, proto
"""

from typing import Dict, FrozenSet, List, Optional, Union

from .base import UpdatePolicy, ValueType
from ..errors import InvalidPolicyCombinationError, MissingFieldError


_NUMERIC_TYPES = frozenset({
    ValueType.BIGINT,
    ValueType.INT64,
    ValueType.BIGFLOAT,
    ValueType.FLOAT64,
})

_OPAQUE_TYPES = frozenset({
    ValueType.BYTES,
    ValueType.STRING,
    ValueType.PROTO,
})

UPDATE_POLICY_VALUE_TYPES: Dict[UpdatePolicy, FrozenSet[ValueType]] = {
    UpdatePolicy.MAX: _NUMERIC_TYPES,
    UpdatePolicy.MIN: _NUMERIC_TYPES,
    UpdatePolicy.SUM: _NUMERIC_TYPES,
    UpdatePolicy.REPLACE: _OPAQUE_TYPES,
    UpdatePolicy.IGNORE: _OPAQUE_TYPES,
}

LEGAL_COMBINATIONS: List[str] = sorted(
    f"{policy.value}:{value_type.value}"
    for policy, value_types in UPDATE_POLICY_VALUE_TYPES.items()
    for value_type in value_types
)


def _coerce(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        return None


def is_legal_combination(
    update_policy: Union[str, UpdatePolicy],
    value_type: Union[str, ValueType],
) -> bool:
    """Return True if the pair is in the registry."""
    policy = _coerce(UpdatePolicy, update_policy)
    vtype = _coerce(ValueType, value_type)
    if policy is None or vtype is None:
        return False
    return vtype in UPDATE_POLICY_VALUE_TYPES[policy]


def validate_update_policy(
    update_policy: Optional[str],
    value_type: Optional[str],
    module: Optional[str] = None,
) -> None:
    """Validate a store module's declared merge semantics.

    Args:
        update_policy: Declared policy (e.g., "sum")
        value_type: Declared value type (e.g., "bigint")
        module: Module name used in error messages

    Raises:
        MissingFieldError: If either value is empty (not configured)
        InvalidPolicyCombinationError: If the pair is not legal (misconfigured)
    """
    if not update_policy:
        raise MissingFieldError(
            "missing 'output.updatePolicy' for kind 'store'",
            module=module,
            field="updatePolicy",
        )
    if not value_type:
        raise MissingFieldError(
            "missing 'output.valueType' for kind 'store'",
            module=module,
            field="valueType",
        )

    if not is_legal_combination(update_policy, value_type):
        raise InvalidPolicyCombinationError(
            f"invalid 'output.updatePolicy' and 'output.valueType' combination "
            f"{update_policy}:{value_type}, use one of: {', '.join(LEGAL_COMBINATIONS)}",
            module=module,
            field="updatePolicy",
        )
