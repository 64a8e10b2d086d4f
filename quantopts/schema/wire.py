"""
Protobuf wire codec for QuantizationOptions.

Message classes are generated at runtime from descriptors that mirror
tensorflow.quantization's quantization_options.proto (same package, names,
field numbers and enum numbers), so payloads written here are readable by
any implementation of that schema and vice versa.

The descriptors live in a private DescriptorPool so loading this module next
to TensorFlow's own generated code does not clash in the default pool.

Usage:
    from quantopts.schema.wire import encode_options, decode_options

    data = encode_options(options)          # binary wire format
    options = decode_options(data)

    text = to_text_format(options)          # protobuf text format
    options = from_text_format(text)
"""

import logging
import re
import threading
from typing import Any, Dict, Optional, Type

from google.protobuf import (
    descriptor_pb2,
    descriptor_pool,
    json_format,
    message_factory,
    text_format,
    unknown_fields,
)
from google.protobuf.message import DecodeError, Message

from quantopts.errors import OptionsDecodeError
from quantopts.schema.spec import (
    DEFAULT_MIN_NUM_ELEMENTS_FOR_WEIGHTS,
    DEFAULT_OP_SET,
    ExperimentalMethod,
    FreezeAllVariables,
    Method,
    OpSet,
    QuantizationMethod,
    QuantizationOptions,
    QuantizationPrecision,
    UnitType,
    UnitWiseQuantizationPrecision,
    parse_enum,
)

logger = logging.getLogger(__name__)

PROTO_PACKAGE = "tensorflow.quantization"
PROTO_FILE_NAME = "tensorflow/compiler/mlir/quantization/tensorflow/quantization_options.proto"

_FDP = descriptor_pb2.FieldDescriptorProto

_classes: Optional[Dict[str, Type[Message]]] = None
_classes_lock = threading.Lock()


def _add_enum(container, name: str, enum_cls) -> None:
    enum = container.add(name=name)
    for member in enum_cls:
        enum.value.add(name=member.name, number=int(member))


def _add_field(msg, name: str, number: int, field_type: int, type_name: str = "",
               label: int = _FDP.LABEL_OPTIONAL, oneof_index: Optional[int] = None) -> None:
    f = msg.field.add(name=name, number=number, type=field_type, label=label)
    if type_name:
        f.type_name = f".{PROTO_PACKAGE}.{type_name}"
    if oneof_index is not None:
        f.oneof_index = oneof_index


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    """Build the FileDescriptorProto for quantization_options.proto."""
    fdp = descriptor_pb2.FileDescriptorProto(
        name=PROTO_FILE_NAME,
        package=PROTO_PACKAGE,
        syntax="proto3",
    )

    method = fdp.message_type.add(name="QuantizationMethod")
    _add_enum(method.enum_type, "Method", Method)
    _add_enum(method.enum_type, "ExperimentalMethod", ExperimentalMethod)
    method.oneof_decl.add(name="method_oneof")
    _add_field(method, "method", 1, _FDP.TYPE_ENUM,
               "QuantizationMethod.Method", oneof_index=0)
    _add_field(method, "experimental_method", 2, _FDP.TYPE_ENUM,
               "QuantizationMethod.ExperimentalMethod", oneof_index=0)

    _add_enum(fdp.enum_type, "QuantizationPrecision", QuantizationPrecision)

    unit = fdp.message_type.add(name="UnitWiseQuantizationPrecision")
    _add_enum(unit.enum_type, "UnitType", UnitType)
    _add_field(unit, "unit_type", 1, _FDP.TYPE_ENUM, "UnitWiseQuantizationPrecision.UnitType")
    _add_field(unit, "func_name", 2, _FDP.TYPE_STRING)
    _add_field(unit, "unit_name", 3, _FDP.TYPE_STRING)
    _add_field(unit, "quantization_precision", 5, _FDP.TYPE_ENUM, "QuantizationPrecision")

    _add_enum(fdp.enum_type, "OpSet", OpSet)

    freeze = fdp.message_type.add(name="FreezeAllVariables")
    _add_field(freeze, "enabled", 1, _FDP.TYPE_BOOL)

    options = fdp.message_type.add(name="QuantizationOptions")
    _add_field(options, "quantization_method", 1, _FDP.TYPE_MESSAGE, "QuantizationMethod")
    _add_field(options, "op_set", 2, _FDP.TYPE_ENUM, "OpSet")
    _add_field(options, "quantization_precision", 3, _FDP.TYPE_ENUM, "QuantizationPrecision")
    _add_field(options, "unit_wise_quantization_precision", 4, _FDP.TYPE_MESSAGE,
               "UnitWiseQuantizationPrecision", label=_FDP.LABEL_REPEATED)
    _add_field(options, "min_num_elements_for_weights", 5, _FDP.TYPE_INT64)
    _add_field(options, "freeze_all_variables", 6, _FDP.TYPE_MESSAGE, "FreezeAllVariables")
    _add_field(options, "enable_per_channel_quantization", 7, _FDP.TYPE_BOOL)

    return fdp


def get_message_classes() -> Dict[str, Type[Message]]:
    """Get generated message classes keyed by short message name (built once)."""
    global _classes
    if _classes is None:
        with _classes_lock:
            if _classes is None:
                pool = descriptor_pool.DescriptorPool()
                pool.AddSerializedFile(build_file_descriptor().SerializeToString())
                file_desc = pool.FindFileByName(PROTO_FILE_NAME)
                _classes = {
                    name: message_factory.GetMessageClass(desc)
                    for name, desc in file_desc.message_types_by_name.items()
                }
    return _classes


def options_message_class() -> Type[Message]:
    """The generated tensorflow.quantization.QuantizationOptions class."""
    return get_message_classes()["QuantizationOptions"]


# =============================================================================
# DATACLASS <-> MESSAGE
# =============================================================================

def to_proto(options: QuantizationOptions) -> Message:
    """Convert options to a protobuf message."""
    msg = options_message_class()()

    method = options.quantization_method
    if method is not None:
        which = method.which_oneof
        if which is None:
            msg.quantization_method.SetInParent()
        else:
            setattr(msg.quantization_method, which, int(method.choice))

    msg.op_set = int(options.op_set)
    msg.quantization_precision = int(options.quantization_precision)
    for unit in options.unit_wise_quantization_precision:
        msg.unit_wise_quantization_precision.add(
            unit_type=int(unit.unit_type),
            func_name=unit.func_name,
            unit_name=unit.unit_name,
            quantization_precision=int(unit.quantization_precision),
        )
    msg.min_num_elements_for_weights = options.min_num_elements_for_weights
    msg.freeze_all_variables.enabled = options.freeze_all_variables.enabled
    msg.enable_per_channel_quantization = options.enable_per_channel_quantization
    return msg


def _method_from_proto(msg: Message) -> QuantizationMethod:
    which = msg.WhichOneof("method_oneof")
    if which == "method":
        return QuantizationMethod(choice=parse_enum(Method, msg.method, "method"))
    if which == "experimental_method":
        return QuantizationMethod(choice=parse_enum(
            ExperimentalMethod, msg.experimental_method, "experimental_method"
        ))
    return QuantizationMethod()


def from_proto(msg: Message) -> QuantizationOptions:
    """Convert a protobuf message to options, applying defaults to unset fields."""
    if msg.DESCRIPTOR.full_name != f"{PROTO_PACKAGE}.QuantizationOptions":
        raise TypeError(f"Expected QuantizationOptions message, got {msg.DESCRIPTOR.full_name}")

    op_set = parse_enum(OpSet, msg.op_set, "op_set")
    if op_set == OpSet.OP_SET_UNSPECIFIED:
        op_set = DEFAULT_OP_SET

    units = tuple(
        UnitWiseQuantizationPrecision(
            unit_type=parse_enum(UnitType, u.unit_type, "unit_type"),
            func_name=u.func_name,
            unit_name=u.unit_name,
            quantization_precision=parse_enum(
                QuantizationPrecision, u.quantization_precision, "quantization_precision"
            ),
        )
        for u in msg.unit_wise_quantization_precision
    )

    if msg.HasField("freeze_all_variables"):
        freeze = FreezeAllVariables(enabled=msg.freeze_all_variables.enabled)
    else:
        freeze = FreezeAllVariables()

    return QuantizationOptions(
        quantization_method=_method_from_proto(msg.quantization_method)
        if msg.HasField("quantization_method") else None,
        op_set=op_set,
        quantization_precision=parse_enum(
            QuantizationPrecision, msg.quantization_precision, "quantization_precision"
        ),
        unit_wise_quantization_precision=units,
        min_num_elements_for_weights=msg.min_num_elements_for_weights
        or DEFAULT_MIN_NUM_ELEMENTS_FOR_WEIGHTS,
        freeze_all_variables=freeze,
        enable_per_channel_quantization=msg.enable_per_channel_quantization,
    )


# =============================================================================
# BINARY / TEXT FORMAT
# =============================================================================

def encode_options(options: QuantizationOptions) -> bytes:
    """Encode options to the protobuf binary wire format."""
    return to_proto(options).SerializeToString(deterministic=True)


def decode_options(data: bytes) -> QuantizationOptions:
    """
    Decode options from the protobuf binary wire format.

    Fields unknown to this schema version are skipped.
    """
    msg = options_message_class()()
    try:
        msg.ParseFromString(data)
    except DecodeError as e:
        raise OptionsDecodeError(f"Invalid QuantizationOptions payload: {e}") from e
    skipped = len(unknown_fields.UnknownFieldSet(msg))
    if skipped:
        logger.debug(f"Ignoring {skipped} unknown field(s) in QuantizationOptions payload")
    return from_proto(msg)


def to_text_format(options: QuantizationOptions) -> str:
    """Render options in protobuf text format."""
    return text_format.MessageToString(to_proto(options))


_UNKNOWN_ENUM_NAME = re.compile(r'Enum type "([\w.]+)" has no value named (\w+)')


def _zero_unknown_enum(text: str, error: text_format.ParseError) -> Optional[str]:
    """Replace the enum name an error points at with 0, or None if it is not one."""
    match = _UNKNOWN_ENUM_NAME.search(str(error))
    line_no, column = error.GetLine(), error.GetColumn()
    if match is None or not line_no or not column:
        return None
    enum_name, value = match.groups()
    lines = text.split("\n")
    if line_no > len(lines):
        return None
    line = lines[line_no - 1]
    start = column - 1
    if line[start:start + len(value)] != value:
        # Fall back to the value token following a field separator
        found = re.search(rf":\s*({re.escape(value)})\b", line)
        if found is None:
            return None
        start = found.start(1)
    logger.warning(
        f"Unknown {enum_name.rsplit('.', 1)[-1]} value {value!r} at line {line_no}, "
        f"treating as unspecified"
    )
    lines[line_no - 1] = line[:start] + "0" + line[start + len(value):]
    return "\n".join(lines)


def from_text_format(text: str) -> QuantizationOptions:
    """
    Parse options from protobuf text format.

    Unknown fields are skipped. Unknown enum names decode to the enum's
    zero sentinel, as in the binary and JSON decoders.
    """
    while True:
        msg = options_message_class()()
        try:
            text_format.Parse(text, msg, allow_unknown_field=True)
        except text_format.ParseError as e:
            patched = _zero_unknown_enum(text, e)
            if patched is None:
                raise OptionsDecodeError(f"Invalid QuantizationOptions text: {e}") from e
            text = patched
            continue
        return from_proto(msg)


def to_proto_dict(options: QuantizationOptions) -> Dict[str, Any]:
    """Canonical protobuf JSON mapping of the options (proto field names)."""
    return json_format.MessageToDict(to_proto(options), preserving_proto_field_name=True)


# =============================================================================
# .PROTO SOURCE
# =============================================================================

_SCALAR_TYPE_NAMES = {
    _FDP.TYPE_BOOL: "bool",
    _FDP.TYPE_INT64: "int64",
    _FDP.TYPE_STRING: "string",
}


def _field_type_name(f: descriptor_pb2.FieldDescriptorProto) -> str:
    if f.type in (_FDP.TYPE_ENUM, _FDP.TYPE_MESSAGE):
        return f.type_name[len(PROTO_PACKAGE) + 2:]
    return _SCALAR_TYPE_NAMES[f.type]


def _render_enum(enum: descriptor_pb2.EnumDescriptorProto, pad: str) -> list:
    lines = [f"{pad}enum {enum.name} {{"]
    lines += [f"{pad}  {v.name} = {v.number};" for v in enum.value]
    lines.append(f"{pad}}}")
    return lines


def _render_message(msg: descriptor_pb2.DescriptorProto) -> list:
    lines = [f"message {msg.name} {{"]
    for enum in msg.enum_type:
        lines += _render_enum(enum, "  ")
    for index, oneof in enumerate(msg.oneof_decl):
        lines.append(f"  oneof {oneof.name} {{")
        lines += [
            f"    {_field_type_name(f)} {f.name} = {f.number};"
            for f in msg.field
            if f.HasField("oneof_index") and f.oneof_index == index
        ]
        lines.append("  }")
    for f in msg.field:
        if f.HasField("oneof_index"):
            continue
        repeated = "repeated " if f.label == _FDP.LABEL_REPEATED else ""
        lines.append(f"  {repeated}{_field_type_name(f)} {f.name} = {f.number};")
    lines.append("}")
    return lines


def proto_source() -> str:
    """Render the schema as .proto source."""
    fdp = build_file_descriptor()
    lines = [f'syntax = "{fdp.syntax}";', "", f"package {fdp.package};"]
    for enum in fdp.enum_type:
        lines.append("")
        lines += _render_enum(enum, "")
    for msg in fdp.message_type:
        lines.append("")
        lines += _render_message(msg)
    return "\n".join(lines) + "\n"
