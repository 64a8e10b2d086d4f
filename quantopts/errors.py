"""
quantopts errors

Every error raised by this package derives from QuantizationOptionsError,
which is a ValueError so callers treating bad configuration as bad input keep
working.
"""

from typing import Optional, Sequence


class QuantizationOptionsError(ValueError):
    """Base class for configuration errors."""


class OptionsDecodeError(QuantizationOptionsError):
    """Serialized options could not be decoded."""


class InvalidMethod(QuantizationOptionsError):
    """An unspecified quantization method reached a live code path."""


class UnsupportedPrecision(QuantizationOptionsError):
    """The requested precision cannot be used."""


class InvalidUnitType(QuantizationOptionsError):
    """A unit-wise override has UNIT_UNSPECIFIED as its unit type."""


class ConflictingUnitOverride(QuantizationOptionsError):
    """
    Two equally specific unit-wise overrides disagree on the precision of
    the same unit.
    """

    def __init__(
        self,
        unit_name: str,
        func_name: Optional[str],
        precisions: Sequence[object],
    ):
        self.unit_name = unit_name
        self.func_name = func_name
        self.precisions = tuple(precisions)
        where = f"{func_name}/{unit_name}" if func_name else unit_name
        names = ", ".join(getattr(p, "name", str(p)) for p in self.precisions)
        super().__init__(f"Conflicting precisions for unit '{where}': {names}")
