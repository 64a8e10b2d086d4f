"""
Tests for the quantization options schema

Tests:
- Enum numbering and sentinels
- Field defaults on construction and decode
- QuantizationMethod oneof behavior
- Dict/JSON decoding, including unknown and malformed input
"""

import dataclasses
import json
import logging

import pytest

from quantopts.errors import OptionsDecodeError
from quantopts.schema import (
    DEFAULT_MIN_NUM_ELEMENTS_FOR_WEIGHTS,
    ExperimentalMethod,
    Method,
    OpSet,
    QuantizationMethod,
    QuantizationOptions,
    QuantizationPrecision,
    UnitType,
    UnitWiseQuantizationPrecision,
)


class TestEnums:
    """Test enum numbering."""

    @pytest.mark.parametrize("enum_cls, sentinel", [
        (Method, "METHOD_UNSPECIFIED"),
        (ExperimentalMethod, "EXPERIMENTAL_METHOD_UNSPECIFIED"),
        (QuantizationPrecision, "PRECISION_UNSPECIFIED"),
        (UnitType, "UNIT_UNSPECIFIED"),
        (OpSet, "OP_SET_UNSPECIFIED"),
    ])
    def test_zero_is_unspecified(self, enum_cls, sentinel):
        """Every enum's zero value is its unspecified sentinel."""
        assert enum_cls(0).name == sentinel

    def test_precision_numbers(self):
        assert QuantizationPrecision.PRECISION_FULL == 1
        assert QuantizationPrecision.PRECISION_W4A4 == 2
        assert QuantizationPrecision.PRECISION_W4A8 == 3
        assert QuantizationPrecision.PRECISION_W8A8 == 4

    def test_op_set_numbers(self):
        assert OpSet.TF == 1
        assert OpSet.XLA == 2
        assert OpSet.UNIFORM_QUANTIZED == 3

    def test_experimental_method_numbers(self):
        assert ExperimentalMethod.STATIC_RANGE == 1
        assert ExperimentalMethod.DYNAMIC_RANGE == 2
        assert ExperimentalMethod.WEIGHT_ONLY == 3

    def test_unit_type_numbers(self):
        assert UnitType.UNIT_NODE == 1
        assert UnitType.UNIT_OP == 2


class TestDefaults:
    """Test default values."""

    def test_constructor_defaults(self):
        """Omitted fields take their documented defaults."""
        options = QuantizationOptions()
        assert options.quantization_method is None
        assert options.op_set == OpSet.TF
        assert options.quantization_precision == QuantizationPrecision.PRECISION_UNSPECIFIED
        assert options.unit_wise_quantization_precision == ()
        assert options.min_num_elements_for_weights == 1024
        assert options.freeze_all_variables.enabled is True
        assert options.enable_per_channel_quantization is False

    def test_from_empty_dict(self):
        """Decoding an empty object equals the defaults."""
        assert QuantizationOptions.from_dict({}) == QuantizationOptions()

    def test_zero_op_set_resolves_to_tf(self):
        options = QuantizationOptions.from_dict({"op_set": "OP_SET_UNSPECIFIED"})
        assert options.op_set == OpSet.TF

    def test_zero_min_elements_resolves_to_default(self):
        options = QuantizationOptions.from_dict({"min_num_elements_for_weights": 0})
        assert options.min_num_elements_for_weights == DEFAULT_MIN_NUM_ELEMENTS_FOR_WEIGHTS

    def test_negative_one_min_elements_preserved(self):
        """-1 disables the threshold and must not be replaced by the default."""
        options = QuantizationOptions.from_dict({"min_num_elements_for_weights": -1})
        assert options.min_num_elements_for_weights == -1

    def test_min_elements_accepts_string(self):
        """int64 values are strings in protobuf JSON."""
        options = QuantizationOptions.from_dict({"min_num_elements_for_weights": "4096"})
        assert options.min_num_elements_for_weights == 4096

    def test_present_freeze_message_reads_its_bit(self):
        """A present FreezeAllVariables without 'enabled' reads as disabled."""
        assert QuantizationOptions.from_dict(
            {"freeze_all_variables": {}}
        ).freeze_all_variables.enabled is False
        assert QuantizationOptions.from_dict(
            {"freeze_all_variables": {"enabled": True}}
        ).freeze_all_variables.enabled is True

    def test_effective_op_set(self):
        options = QuantizationOptions(op_set=OpSet.OP_SET_UNSPECIFIED)
        assert options.effective_op_set == OpSet.TF

    def test_per_channel_applies_only_to_uniform_quantized(self):
        options = QuantizationOptions(enable_per_channel_quantization=True)
        assert not options.per_channel_applies
        assert options.replace(op_set=OpSet.UNIFORM_QUANTIZED).per_channel_applies


class TestQuantizationMethod:
    """Test the method oneof."""

    def test_empty(self):
        method = QuantizationMethod()
        assert method.which_oneof is None
        assert method.method is None
        assert method.experimental_method is None

    def test_experimental_branch(self):
        method = QuantizationMethod.experimental(ExperimentalMethod.DYNAMIC_RANGE)
        assert method.which_oneof == "experimental_method"
        assert method.experimental_method == ExperimentalMethod.DYNAMIC_RANGE
        assert method.method is None

    def test_setting_one_branch_clears_the_other(self):
        """Switching branches leaves exactly one set."""
        method = QuantizationMethod.experimental(ExperimentalMethod.WEIGHT_ONLY)
        stable = method.with_method(Method.METHOD_UNSPECIFIED)
        assert stable.which_oneof == "method"
        assert stable.experimental_method is None

        back = stable.with_experimental_method(ExperimentalMethod.STATIC_RANGE)
        assert back.which_oneof == "experimental_method"
        assert back.method is None

    def test_branches_with_same_number_differ(self):
        """Both sentinels are 0 but belong to different branches."""
        stable = QuantizationMethod.stable(Method.METHOD_UNSPECIFIED)
        experimental = QuantizationMethod.experimental(
            ExperimentalMethod.EXPERIMENTAL_METHOD_UNSPECIFIED
        )
        assert stable != experimental
        assert len({stable, experimental, QuantizationMethod()}) == 3

    def test_rejects_plain_int(self):
        with pytest.raises(TypeError):
            QuantizationMethod(choice=1)

    def test_both_branches_in_dict_rejected(self):
        with pytest.raises(OptionsDecodeError):
            QuantizationMethod.from_dict({"method": 0, "experimental_method": 1})

    def test_to_dict(self):
        method = QuantizationMethod.experimental(ExperimentalMethod.STATIC_RANGE)
        assert method.to_dict() == {"experimental_method": "STATIC_RANGE"}
        assert QuantizationMethod().to_dict() == {}


class TestOptionsValue:
    """Test immutability and copy helpers."""

    def test_frozen(self, w8a8_options):
        with pytest.raises(dataclasses.FrozenInstanceError):
            w8a8_options.op_set = OpSet.XLA

    def test_list_overrides_become_tuple(self):
        override = UnitWiseQuantizationPrecision(unit_type=UnitType.UNIT_OP, unit_name="conv1")
        options = QuantizationOptions(unit_wise_quantization_precision=[override])
        assert options.unit_wise_quantization_precision == (override,)
        hash(options)

    def test_with_unit_override_appends(self, w8a8_options):
        extra = UnitWiseQuantizationPrecision(
            unit_type=UnitType.UNIT_NODE,
            unit_name="dense",
            quantization_precision=QuantizationPrecision.PRECISION_W4A8,
        )
        updated = w8a8_options.with_unit_override(extra)
        assert updated.unit_wise_quantization_precision[-1] == extra
        assert len(updated.unit_wise_quantization_precision) == 2
        assert len(w8a8_options.unit_wise_quantization_precision) == 1

    def test_plain_ints_become_enum_members(self):
        options = QuantizationOptions().replace(op_set=2, quantization_precision=4)
        assert options.op_set is OpSet.XLA
        assert options.quantization_precision is QuantizationPrecision.PRECISION_W8A8
        assert json.loads(options.to_json())["op_set"] == "XLA"

        override = UnitWiseQuantizationPrecision(unit_type=2, quantization_precision=1)
        assert override.unit_type is UnitType.UNIT_OP
        assert override.quantization_precision is QuantizationPrecision.PRECISION_FULL

    def test_unknown_int_rejected_on_construction(self):
        with pytest.raises(ValueError):
            QuantizationOptions(op_set=42)


class TestDictDecoding:
    """Test dict/JSON decoding."""

    def test_w8a8_example(self):
        """Only precision and one override given; defaults fill the rest."""
        options = QuantizationOptions.from_json(json.dumps({
            "quantization_precision": "PRECISION_W8A8",
            "unit_wise_quantization_precision": [
                {"unit_type": "UNIT_OP", "unit_name": "conv1",
                 "quantization_precision": "PRECISION_FULL"},
            ],
        }))
        assert options.op_set == OpSet.TF
        assert options.min_num_elements_for_weights == 1024
        assert options.unit_wise_quantization_precision == (
            UnitWiseQuantizationPrecision(
                unit_type=UnitType.UNIT_OP,
                unit_name="conv1",
                quantization_precision=QuantizationPrecision.PRECISION_FULL,
            ),
        )

    def test_json_roundtrip(self, full_options, w8a8_options):
        for options in (full_options, w8a8_options):
            assert QuantizationOptions.from_json(options.to_json()) == options

    def test_camel_case_keys(self):
        options = QuantizationOptions.from_dict({
            "opSet": "XLA",
            "minNumElementsForWeights": "-1",
            "enablePerChannelQuantization": True,
            "quantizationMethod": {"experimentalMethod": "WEIGHT_ONLY"},
        })
        assert options.op_set == OpSet.XLA
        assert options.min_num_elements_for_weights == -1
        assert options.enable_per_channel_quantization is True
        assert options.quantization_method.experimental_method == ExperimentalMethod.WEIGHT_ONLY

    def test_enum_numbers_accepted(self):
        options = QuantizationOptions.from_dict({"op_set": 2, "quantization_precision": 4})
        assert options.op_set == OpSet.XLA
        assert options.quantization_precision == QuantizationPrecision.PRECISION_W8A8

    def test_null_means_omitted(self):
        assert QuantizationOptions.from_dict(
            {"op_set": None, "freeze_all_variables": None}
        ) == QuantizationOptions()

    def test_unknown_fields_ignored(self):
        """Fields from newer schema versions do not fail decoding."""
        options = QuantizationOptions.from_dict({
            "op_set": "XLA",
            "target_hardware": "tpu",
            "unit_wise_quantization_precision": [
                {"unit_type": "UNIT_OP", "unit_name": "conv1", "quantization_method": {}},
            ],
        })
        assert options.op_set == OpSet.XLA
        assert options.unit_wise_quantization_precision[0].unit_name == "conv1"

    def test_unknown_enum_value_decodes_to_sentinel(self, caplog):
        with caplog.at_level(logging.WARNING, logger="quantopts.schema.spec"):
            options = QuantizationOptions.from_dict({"quantization_precision": "PRECISION_W2A8"})
        assert options.quantization_precision == QuantizationPrecision.PRECISION_UNSPECIFIED
        assert "PRECISION_W2A8" in caplog.text

    def test_unknown_op_set_number_falls_back_to_tf(self):
        assert QuantizationOptions.from_dict({"op_set": 42}).op_set == OpSet.TF

    @pytest.mark.parametrize("data", [
        [],
        {"op_set": [1]},
        {"op_set": True},
        {"min_num_elements_for_weights": "many"},
        {"min_num_elements_for_weights": 1.5},
        {"min_num_elements_for_weights": 2 ** 63},
        {"enable_per_channel_quantization": "yes"},
        {"unit_wise_quantization_precision": {"unit_name": "conv1"}},
        {"unit_wise_quantization_precision": [{"unit_name": 7}]},
        {"quantization_method": "STATIC_RANGE"},
    ])
    def test_malformed_input_rejected(self, data):
        with pytest.raises(OptionsDecodeError):
            QuantizationOptions.from_dict(data)

    def test_invalid_json(self):
        with pytest.raises(OptionsDecodeError):
            QuantizationOptions.from_json("{op_set: TF")

    def test_decode_error_is_value_error(self):
        with pytest.raises(ValueError):
            QuantizationOptions.from_json("[]")
