"""
quantopts - Quantization Options

Mixed-precision quantization configuration for model quantization
pipelines.

Key Features:
- Immutable schema: methods, precisions, op sets, unit-wise overrides
- Protobuf wire, text and JSON codecs compatible with
  tensorflow.quantization.QuantizationOptions
- Unit precision lookup with a strict conflict policy
- quantopts CLI to inspect and convert option files

Usage:
    # CLI
    $ quantopts show options.pbtxt
    $ quantopts convert options.json --output options.pb
    $ quantopts precision options.pbtxt conv1 --type op

    # Python
    from quantopts import QuantizationOptions, load_options, resolve_precision
    options = load_options("options.pbtxt")
    precision = resolve_precision(options, "conv1")
"""

from quantopts.version import __version__, __version_info__
from quantopts.errors import (
    QuantizationOptionsError,
    OptionsDecodeError,
    InvalidMethod,
    UnsupportedPrecision,
    InvalidUnitType,
    ConflictingUnitOverride,
)
from quantopts.schema import (
    Method,
    ExperimentalMethod,
    QuantizationPrecision,
    UnitType,
    OpSet,
    QuantizationMethod,
    UnitWiseQuantizationPrecision,
    FreezeAllVariables,
    QuantizationOptions,
    load_options,
    save_options,
)
from quantopts.resolve import (
    effective_method,
    find_unit_override,
    resolve_precision,
)

__all__ = [
    "__version__",
    "__version_info__",
    # Errors
    "QuantizationOptionsError",
    "OptionsDecodeError",
    "InvalidMethod",
    "UnsupportedPrecision",
    "InvalidUnitType",
    "ConflictingUnitOverride",
    # Schema
    "Method",
    "ExperimentalMethod",
    "QuantizationPrecision",
    "UnitType",
    "OpSet",
    "QuantizationMethod",
    "UnitWiseQuantizationPrecision",
    "FreezeAllVariables",
    "QuantizationOptions",
    "load_options",
    "save_options",
    # Resolution
    "effective_method",
    "find_unit_override",
    "resolve_precision",
]
