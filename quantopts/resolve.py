"""
Unit precision lookup.

Answers "which precision applies to this node/op" for a consumer of
QuantizationOptions. Lookups are strict: ambiguous or unspecified
configuration raises instead of silently falling back.

Override policy:
- An override matches a unit when unit_name is equal, func_name is empty or
  equal, and unit_type is equal (when the caller gives one).
- Overrides scoped with a func_name beat unscoped ones.
- Among equally specific matches, equal precisions collapse into one;
  different precisions raise ConflictingUnitOverride.
- Without a matching override the default precision applies.
"""

from typing import List, Optional, Union

from quantopts.errors import (
    ConflictingUnitOverride,
    InvalidMethod,
    InvalidUnitType,
    UnsupportedPrecision,
)
from quantopts.schema.spec import (
    ExperimentalMethod,
    Method,
    QuantizationOptions,
    QuantizationPrecision,
    UnitType,
    UnitWiseQuantizationPrecision,
)


def effective_method(options: QuantizationOptions) -> Optional[Union[Method, ExperimentalMethod]]:
    """
    Get the configured quantization method.

    Returns:
        None when no method is configured (do not quantize), otherwise the
        active branch of the oneof

    Raises:
        InvalidMethod: method message present without a usable branch
    """
    method = options.quantization_method
    if method is None:
        return None
    if method.choice is None:
        raise InvalidMethod("quantization_method is set but selects no method")
    if method.choice == 0:
        raise InvalidMethod(f"{method.which_oneof} is {method.choice.name}")
    return method.choice


def matching_overrides(
    options: QuantizationOptions,
    unit_name: str,
    func_name: str = "",
    unit_type: Optional[UnitType] = None,
) -> List[UnitWiseQuantizationPrecision]:
    """All overrides that apply to a unit, in configuration order."""
    return [
        u for u in options.unit_wise_quantization_precision
        if u.unit_name == unit_name
        and (not u.func_name or u.func_name == func_name)
        and (unit_type is None or u.unit_type == unit_type)
    ]


def find_unit_override(
    options: QuantizationOptions,
    unit_name: str,
    func_name: str = "",
    unit_type: Optional[UnitType] = None,
) -> Optional[UnitWiseQuantizationPrecision]:
    """
    Get the override that decides a unit's precision.

    Returns:
        The winning override, or None when no override matches

    Raises:
        ConflictingUnitOverride: equally specific overrides disagree
        InvalidUnitType: a deciding override has UNIT_UNSPECIFIED
    """
    matches = matching_overrides(options, unit_name, func_name, unit_type)
    if not matches:
        return None

    candidates = [u for u in matches if u.func_name] or matches
    precisions = list(dict.fromkeys(u.quantization_precision for u in candidates))
    if len(precisions) > 1:
        raise ConflictingUnitOverride(unit_name, func_name or None, precisions)

    for u in candidates:
        if u.unit_type == UnitType.UNIT_UNSPECIFIED:
            raise InvalidUnitType(f"Override for unit '{u.unit_name}' has UNIT_UNSPECIFIED")
    return candidates[-1]


def resolve_precision(
    options: QuantizationOptions,
    unit_name: str,
    func_name: str = "",
    unit_type: Optional[UnitType] = None,
) -> QuantizationPrecision:
    """
    Get the precision that applies to a unit.

    Raises:
        UnsupportedPrecision: the result is PRECISION_UNSPECIFIED
        ConflictingUnitOverride, InvalidUnitType: see find_unit_override
    """
    override = find_unit_override(options, unit_name, func_name, unit_type)
    if override is not None:
        precision = override.quantization_precision
    else:
        precision = options.quantization_precision

    if precision == QuantizationPrecision.PRECISION_UNSPECIFIED:
        source = "unit override" if override is not None else "default precision"
        raise UnsupportedPrecision(f"No precision for unit '{unit_name}': {source} is unspecified")
    return precision
