"""
Quantization Options Specification

Defines the mixed-precision quantization configuration consumed by a
model quantization pipeline.

Message Overview:
- QuantizationMethod: oneof {method, experimental_method}
- UnitWiseQuantizationPrecision: precision override for one node or op
- FreezeAllVariables: variable freezing toggle
- QuantizationOptions: root message (fields 1-7)

Enum numbering and field names match the tensorflow.quantization protobuf
package, so the dict form produced here is also valid protobuf JSON.

Defaults on decode:
- op_set: TF when omitted or zero
- min_num_elements_for_weights: 1024 when omitted or zero (-1 disables)
- freeze_all_variables: enabled when the message is omitted
- enable_per_channel_quantization: False
"""

import json
import logging
from dataclasses import dataclass, field, fields, replace
from enum import IntEnum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Type, TypeVar, Union

from quantopts.errors import OptionsDecodeError

logger = logging.getLogger(__name__)

DEFAULT_MIN_NUM_ELEMENTS_FOR_WEIGHTS = 1024
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

E = TypeVar("E", bound=IntEnum)


class Method(IntEnum):
    """Stable quantization methods."""
    METHOD_UNSPECIFIED = 0


class ExperimentalMethod(IntEnum):
    """Experimental quantization methods (unstable behavior)."""
    EXPERIMENTAL_METHOD_UNSPECIFIED = 0
    STATIC_RANGE = 1   # Ranges determined ahead of time
    DYNAMIC_RANGE = 2  # Ranges determined during execution, weights quantized at conversion
    WEIGHT_ONLY = 3    # Only weights are quantized


class QuantizationPrecision(IntEnum):
    """Numeric precision of a quantized unit."""
    PRECISION_UNSPECIFIED = 0
    PRECISION_FULL = 1  # Do not quantize
    PRECISION_W4A4 = 2
    PRECISION_W4A8 = 3
    PRECISION_W8A8 = 4


class UnitType(IntEnum):
    """Granularity of a unit-wise override."""
    UNIT_UNSPECIFIED = 0
    UNIT_NODE = 1
    UNIT_OP = 2


class OpSet(IntEnum):
    """Op family the quantized model may use."""
    OP_SET_UNSPECIFIED = 0
    TF = 1                 # TF ops mimicking quantization
    XLA = 2
    UNIFORM_QUANTIZED = 3


DEFAULT_OP_SET = OpSet.TF

MethodChoice = Union[Method, ExperimentalMethod]


# =============================================================================
# DECODING HELPERS
# =============================================================================

def _camel(name: str) -> str:
    """snake_case -> lowerCamelCase (protobuf JSON name)."""
    first, *rest = name.split("_")
    return first + "".join(part.title() for part in rest)


def _get(data: Mapping[str, Any], name: str) -> Any:
    """Read a field by proto name or JSON name. None means omitted."""
    if name in data:
        return data[name]
    return data.get(_camel(name))


def _check_mapping(data: Any, message: str) -> None:
    if not isinstance(data, Mapping):
        raise OptionsDecodeError(
            f"{message} must be an object, got {type(data).__name__}"
        )


def _log_unknown_keys(data: Mapping[str, Any], known: Iterable[str], message: str) -> None:
    names = set()
    for name in known:
        names.add(name)
        names.add(_camel(name))
    unknown = sorted(str(k) for k in data if k not in names)
    if unknown:
        logger.debug(f"Ignoring unknown {message} fields: {', '.join(unknown)}")


def parse_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    """
    Decode an enum given as member, number, or name.

    Unknown numbers and names come from newer schema versions; they decode
    to the enum's zero sentinel instead of failing.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise OptionsDecodeError(f"Invalid value for '{field_name}': {value!r}")
    if isinstance(value, int):
        try:
            return enum_cls(value)
        except ValueError:
            pass
    elif value in enum_cls.__members__:
        return enum_cls[value]
    sentinel = enum_cls(0)
    logger.warning(
        f"Unknown {enum_cls.__name__} value {value!r} for '{field_name}', "
        f"treating as {sentinel.name}"
    )
    return sentinel


def _parse_int64(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise OptionsDecodeError(f"Invalid integer for '{field_name}': {value!r}")
    if isinstance(value, str):
        try:
            value = int(value)
        except ValueError:
            raise OptionsDecodeError(f"Invalid integer for '{field_name}': {value!r}") from None
    if not isinstance(value, int):
        raise OptionsDecodeError(f"Invalid integer for '{field_name}': {value!r}")
    if not INT64_MIN <= value <= INT64_MAX:
        raise OptionsDecodeError(f"Value out of int64 range for '{field_name}': {value}")
    return value


def _parse_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise OptionsDecodeError(f"Invalid boolean for '{field_name}': {value!r}")
    return value


def _parse_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise OptionsDecodeError(f"Invalid string for '{field_name}': {value!r}")
    return value


# =============================================================================
# MESSAGES
# =============================================================================

@dataclass(frozen=True, eq=False)
class QuantizationMethod:
    """
    Quantization method: either a stable or an experimental method.

    The oneof is held in a single ``choice`` slot whose type tells which
    branch is active, so both branches can never be set at once. ``None``
    means the message is present but no branch is set.
    """
    choice: Optional[MethodChoice] = None

    def __post_init__(self):
        if self.choice is not None and not isinstance(self.choice, (Method, ExperimentalMethod)):
            raise TypeError(
                f"choice must be Method or ExperimentalMethod, got {type(self.choice).__name__}"
            )

    @classmethod
    def stable(cls, method: Method) -> "QuantizationMethod":
        return cls(choice=Method(method))

    @classmethod
    def experimental(cls, method: ExperimentalMethod) -> "QuantizationMethod":
        return cls(choice=ExperimentalMethod(method))

    @property
    def which_oneof(self) -> Optional[str]:
        """Name of the active branch: "method", "experimental_method" or None."""
        if isinstance(self.choice, Method):
            return "method"
        if isinstance(self.choice, ExperimentalMethod):
            return "experimental_method"
        return None

    @property
    def method(self) -> Optional[Method]:
        return self.choice if isinstance(self.choice, Method) else None

    @property
    def experimental_method(self) -> Optional[ExperimentalMethod]:
        return self.choice if isinstance(self.choice, ExperimentalMethod) else None

    def with_method(self, method: Method) -> "QuantizationMethod":
        """Copy with the stable branch set and the experimental one cleared."""
        return replace(self, choice=Method(method))

    def with_experimental_method(self, method: ExperimentalMethod) -> "QuantizationMethod":
        """Copy with the experimental branch set and the stable one cleared."""
        return replace(self, choice=ExperimentalMethod(method))

    def __eq__(self, other: object) -> bool:
        # Method(0) == ExperimentalMethod(0) as ints; compare the branch too
        if not isinstance(other, QuantizationMethod):
            return NotImplemented
        return self.which_oneof == other.which_oneof and self.choice == other.choice

    def __hash__(self) -> int:
        return hash((self.which_oneof, None if self.choice is None else int(self.choice)))

    def __repr__(self) -> str:
        if self.choice is None:
            return "QuantizationMethod()"
        return f"QuantizationMethod({self.which_oneof}={self.choice.name})"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        if self.choice is None:
            return {}
        return {self.which_oneof: self.choice.name}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "QuantizationMethod":
        """Deserialize from dictionary."""
        _check_mapping(d, "QuantizationMethod")
        _log_unknown_keys(d, ("method", "experimental_method"), "QuantizationMethod")
        method = _get(d, "method")
        experimental = _get(d, "experimental_method")
        if method is not None and experimental is not None:
            raise OptionsDecodeError(
                "QuantizationMethod sets both 'method' and 'experimental_method'"
            )
        if method is not None:
            return cls(choice=parse_enum(Method, method, "method"))
        if experimental is not None:
            return cls(choice=parse_enum(ExperimentalMethod, experimental, "experimental_method"))
        return cls()


@dataclass(frozen=True)
class UnitWiseQuantizationPrecision:
    """
    Precision override for one node or op.

    (func_name, unit_name) is only unique within a function definition.
    An empty func_name applies the override to the unit in every function.
    """
    unit_type: UnitType = UnitType.UNIT_UNSPECIFIED
    func_name: str = ""
    unit_name: str = ""
    quantization_precision: QuantizationPrecision = QuantizationPrecision.PRECISION_UNSPECIFIED

    def __post_init__(self):
        object.__setattr__(self, "unit_type", UnitType(self.unit_type))
        object.__setattr__(
            self, "quantization_precision", QuantizationPrecision(self.quantization_precision)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "unit_type": self.unit_type.name,
            "func_name": self.func_name,
            "unit_name": self.unit_name,
            "quantization_precision": self.quantization_precision.name,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "UnitWiseQuantizationPrecision":
        """Deserialize from dictionary."""
        _check_mapping(d, "UnitWiseQuantizationPrecision")
        _log_unknown_keys(d, [f.name for f in fields(cls)], "UnitWiseQuantizationPrecision")
        unit_type = _get(d, "unit_type")
        func_name = _get(d, "func_name")
        unit_name = _get(d, "unit_name")
        precision = _get(d, "quantization_precision")
        return cls(
            unit_type=UnitType.UNIT_UNSPECIFIED if unit_type is None
            else parse_enum(UnitType, unit_type, "unit_type"),
            func_name="" if func_name is None else _parse_str(func_name, "func_name"),
            unit_name="" if unit_name is None else _parse_str(unit_name, "unit_name"),
            quantization_precision=QuantizationPrecision.PRECISION_UNSPECIFIED if precision is None
            else parse_enum(QuantizationPrecision, precision, "quantization_precision"),
        )


@dataclass(frozen=True)
class FreezeAllVariables:
    """
    Variable freezing during quantization.

    enabled=False keeps large constants as variables. It is experimental and
    required for models larger than 2 GiB.
    """
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "FreezeAllVariables":
        _check_mapping(d, "FreezeAllVariables")
        _log_unknown_keys(d, ("enabled",), "FreezeAllVariables")
        enabled = _get(d, "enabled")
        # A present message follows proto3 rules: a missing bit reads as False
        return cls(enabled=False if enabled is None else _parse_bool(enabled, "enabled"))


@dataclass(frozen=True)
class QuantizationOptions:
    """
    Root quantization configuration.

    quantization_method is the model-wide default; None means "do not
    quantize the model". Unit-wise entries override the default precision
    for the units they match. Conflicting entries are left for the consumer
    to reject (see quantopts.resolve).
    """
    quantization_method: Optional[QuantizationMethod] = None
    op_set: OpSet = DEFAULT_OP_SET
    quantization_precision: QuantizationPrecision = QuantizationPrecision.PRECISION_UNSPECIFIED
    unit_wise_quantization_precision: Tuple[UnitWiseQuantizationPrecision, ...] = ()
    min_num_elements_for_weights: int = DEFAULT_MIN_NUM_ELEMENTS_FOR_WEIGHTS
    freeze_all_variables: FreezeAllVariables = field(default_factory=FreezeAllVariables)
    enable_per_channel_quantization: bool = False

    def __post_init__(self):
        # Plain ints are accepted for enum fields
        object.__setattr__(self, "op_set", OpSet(self.op_set))
        object.__setattr__(
            self, "quantization_precision", QuantizationPrecision(self.quantization_precision)
        )
        if not isinstance(self.unit_wise_quantization_precision, tuple):
            object.__setattr__(
                self,
                "unit_wise_quantization_precision",
                tuple(self.unit_wise_quantization_precision),
            )

    @property
    def effective_op_set(self) -> OpSet:
        """Op set with the TF default applied."""
        if self.op_set == OpSet.OP_SET_UNSPECIFIED:
            return DEFAULT_OP_SET
        return self.op_set

    @property
    def per_channel_applies(self) -> bool:
        """Per-channel quantization only takes effect with the uniform quantized op set."""
        return self.enable_per_channel_quantization and self.effective_op_set == OpSet.UNIFORM_QUANTIZED

    def replace(self, **changes: Any) -> "QuantizationOptions":
        """Copy with the given fields changed."""
        return replace(self, **changes)

    def with_unit_override(self, override: UnitWiseQuantizationPrecision) -> "QuantizationOptions":
        """Copy with one unit-wise override appended."""
        return replace(
            self,
            unit_wise_quantization_precision=self.unit_wise_quantization_precision + (override,),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary (protobuf JSON layout, proto field names)."""
        data: Dict[str, Any] = {}
        if self.quantization_method is not None:
            data["quantization_method"] = self.quantization_method.to_dict()
        data.update({
            "op_set": self.op_set.name,
            "quantization_precision": self.quantization_precision.name,
            "unit_wise_quantization_precision": [
                u.to_dict() for u in self.unit_wise_quantization_precision
            ],
            "min_num_elements_for_weights": self.min_num_elements_for_weights,
            "freeze_all_variables": self.freeze_all_variables.to_dict(),
            "enable_per_channel_quantization": self.enable_per_channel_quantization,
        })
        return data

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "QuantizationOptions":
        """Deserialize from dictionary, applying defaults to omitted fields."""
        _check_mapping(d, "QuantizationOptions")
        _log_unknown_keys(d, [f.name for f in fields(cls)], "QuantizationOptions")

        method = _get(d, "quantization_method")
        op_set = _get(d, "op_set")
        precision = _get(d, "quantization_precision")
        units = _get(d, "unit_wise_quantization_precision")
        min_elements = _get(d, "min_num_elements_for_weights")
        freeze = _get(d, "freeze_all_variables")
        per_channel = _get(d, "enable_per_channel_quantization")

        op_set = DEFAULT_OP_SET if op_set is None else parse_enum(OpSet, op_set, "op_set")
        if op_set == OpSet.OP_SET_UNSPECIFIED:
            op_set = DEFAULT_OP_SET

        min_elements = 0 if min_elements is None else _parse_int64(
            min_elements, "min_num_elements_for_weights"
        )
        if min_elements == 0:
            min_elements = DEFAULT_MIN_NUM_ELEMENTS_FOR_WEIGHTS

        if units is None:
            units = []
        elif not isinstance(units, (list, tuple)):
            raise OptionsDecodeError("'unit_wise_quantization_precision' must be a list")

        return cls(
            quantization_method=None if method is None else QuantizationMethod.from_dict(method),
            op_set=op_set,
            quantization_precision=QuantizationPrecision.PRECISION_UNSPECIFIED if precision is None
            else parse_enum(QuantizationPrecision, precision, "quantization_precision"),
            unit_wise_quantization_precision=tuple(
                UnitWiseQuantizationPrecision.from_dict(u) for u in units
            ),
            min_num_elements_for_weights=min_elements,
            freeze_all_variables=FreezeAllVariables() if freeze is None
            else FreezeAllVariables.from_dict(freeze),
            enable_per_channel_quantization=False if per_channel is None
            else _parse_bool(per_channel, "enable_per_channel_quantization"),
        )

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: Union[str, bytes]) -> "QuantizationOptions":
        """Deserialize from JSON string."""
        try:
            data = json.loads(json_str)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise OptionsDecodeError(f"Invalid JSON: {e}") from e
        return cls.from_dict(data)
