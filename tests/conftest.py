"""
quantopts Test Configuration

Pytest fixtures and configuration for quantopts tests.
"""

import sys
from pathlib import Path
from typing import Generator

import pytest


# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from quantopts.schema import (  # noqa: E402
    ExperimentalMethod,
    FreezeAllVariables,
    OpSet,
    QuantizationMethod,
    QuantizationOptions,
    QuantizationPrecision,
    UnitType,
    UnitWiseQuantizationPrecision,
)
from quantopts.settings import reset_settings  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "cli: marks tests that invoke the command-line interface"
    )


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return project root directory."""
    return PROJECT_ROOT


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Isolate tests from QUANTOPTS_* variables in the environment."""
    monkeypatch.delenv("QUANTOPTS_LOG_LEVEL", raising=False)
    monkeypatch.delenv("QUANTOPTS_DEFAULT_FORMAT", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def w8a8_options() -> QuantizationOptions:
    """W8A8 default with a single full-precision op override."""
    return QuantizationOptions(
        quantization_precision=QuantizationPrecision.PRECISION_W8A8,
        unit_wise_quantization_precision=(
            UnitWiseQuantizationPrecision(
                unit_type=UnitType.UNIT_OP,
                unit_name="conv1",
                quantization_precision=QuantizationPrecision.PRECISION_FULL,
            ),
        ),
    )


@pytest.fixture
def full_options() -> QuantizationOptions:
    """Options with every field set to a non-default value."""
    return QuantizationOptions(
        quantization_method=QuantizationMethod.experimental(ExperimentalMethod.STATIC_RANGE),
        op_set=OpSet.UNIFORM_QUANTIZED,
        quantization_precision=QuantizationPrecision.PRECISION_W4A8,
        unit_wise_quantization_precision=(
            UnitWiseQuantizationPrecision(
                unit_type=UnitType.UNIT_NODE,
                func_name="serving_default",
                unit_name="MatMul_1",
                quantization_precision=QuantizationPrecision.PRECISION_W8A8,
            ),
            UnitWiseQuantizationPrecision(
                unit_type=UnitType.UNIT_OP,
                unit_name="conv1",
                quantization_precision=QuantizationPrecision.PRECISION_FULL,
            ),
        ),
        min_num_elements_for_weights=-1,
        freeze_all_variables=FreezeAllVariables(enabled=False),
        enable_per_channel_quantization=True,
    )


@pytest.fixture
def options_file(tmp_path: Path, full_options: QuantizationOptions) -> Path:
    """Write full_options as protobuf text format."""
    from quantopts.schema import save_options

    return save_options(full_options, tmp_path / "options.pbtxt")
