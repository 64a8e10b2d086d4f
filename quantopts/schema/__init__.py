"""
Quantization Options Schema

Mixed-precision quantization configuration shared with a model
quantization pipeline.

Structure:
┌──────────────────────────────────────────┐
│ QuantizationOptions                      │
│  1 quantization_method  (oneof)          │ method | experimental_method
│  2 op_set                                │ TF (default) | XLA | UNIFORM_QUANTIZED
│  3 quantization_precision                │ FULL | W4A4 | W4A8 | W8A8
│  4 unit_wise_quantization_precision[]    │ per node/op overrides
│  5 min_num_elements_for_weights          │ 1024 (default), -1 disables
│  6 freeze_all_variables                  │ enabled (default)
│  7 enable_per_channel_quantization       │ uniform quantized op set only
└──────────────────────────────────────────┘

Usage:
    from quantopts.schema import QuantizationOptions, QuantizationPrecision
    from quantopts.schema import load_options, save_options

    options = QuantizationOptions(
        quantization_precision=QuantizationPrecision.PRECISION_W8A8,
    )
    save_options(options, "options.pbtxt")
    options = load_options("options.pbtxt")
"""

from .spec import (
    Method,
    ExperimentalMethod,
    QuantizationPrecision,
    UnitType,
    OpSet,
    QuantizationMethod,
    UnitWiseQuantizationPrecision,
    FreezeAllVariables,
    QuantizationOptions,
    DEFAULT_OP_SET,
    DEFAULT_MIN_NUM_ELEMENTS_FOR_WEIGHTS,
)

from .wire import (
    to_proto,
    from_proto,
    encode_options,
    decode_options,
    to_text_format,
    from_text_format,
    proto_source,
)

from .io import (
    detect_format,
    load_options,
    save_options,
    loads_options,
    dumps_options,
)

__all__ = [
    # Spec
    "Method",
    "ExperimentalMethod",
    "QuantizationPrecision",
    "UnitType",
    "OpSet",
    "QuantizationMethod",
    "UnitWiseQuantizationPrecision",
    "FreezeAllVariables",
    "QuantizationOptions",
    "DEFAULT_OP_SET",
    "DEFAULT_MIN_NUM_ELEMENTS_FOR_WEIGHTS",
    # Wire
    "to_proto",
    "from_proto",
    "encode_options",
    "decode_options",
    "to_text_format",
    "from_text_format",
    "proto_source",
    # IO
    "detect_format",
    "load_options",
    "save_options",
    "loads_options",
    "dumps_options",
]
