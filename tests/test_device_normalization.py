from __future__ import annotations

import pytest

from devicedash.exceptions import DeviceValidationError
from devicedash.ingestion.normalize import (
    coerce_fields,
    flatten_form,
    parse_device_id,
    parse_int,
    unflatten_form,
)


def test_coerce_fields_parses_typed_fields_and_passes_others_as_text() -> None:
    fields = coerce_fields({"status": "3", "subStatus": "11", "name": "Pump 7", "position": {"x": "0.25"}})

    assert fields == {"status": 3, "subStatus": 11, "name": "Pump 7", "position": {"x": 0.25, "y": 0.0}}


def test_coerce_fields_drops_absent_values() -> None:
    assert coerce_fields({"status": None, "name": "A"}) == {"name": "A"}


def test_coerce_fields_accepts_python_attribute_name_for_sub_status() -> None:
    assert coerce_fields({"sub_status": 4}) == {"subStatus": 4}


@pytest.mark.parametrize("field", ["id", "zone", "updated"])
def test_coerce_fields_rejects_immutable_fields(field: str) -> None:
    with pytest.raises(DeviceValidationError) as exc_info:
        coerce_fields({field: "x"})
    assert exc_info.value.field == field


@pytest.mark.parametrize("value", ["abc", "", "1.5", "NaN"])
def test_malformed_status_is_rejected_instead_of_becoming_nan(value: str) -> None:
    with pytest.raises(DeviceValidationError):
        coerce_fields({"status": value})


def test_position_axis_must_be_finite() -> None:
    with pytest.raises(DeviceValidationError) as exc_info:
        coerce_fields({"position": {"x": "nan", "y": "0.1"}})
    assert exc_info.value.field == "position.x"


def test_position_must_be_an_object() -> None:
    with pytest.raises(DeviceValidationError):
        coerce_fields({"position": "0.1,0.2"})


def test_parse_int_accepts_integral_float_but_not_bool() -> None:
    assert parse_int(3.0, "status") == 3
    with pytest.raises(DeviceValidationError):
        parse_int(True, "status")


def test_parse_device_id_rejects_non_numeric_path_segment() -> None:
    assert parse_device_id(" 12 ") == 12
    with pytest.raises(DeviceValidationError) as exc_info:
        parse_device_id("twelve")
    assert exc_info.value.field == "id"


def test_unflatten_form_builds_nested_position() -> None:
    form = [("name", "Gauge"), ("position[x]", "0.4"), ("position[y]", "0.6")]

    assert unflatten_form(form) == {"name": "Gauge", "position": {"x": "0.4", "y": "0.6"}}


def test_flatten_form_is_the_inverse_of_unflatten() -> None:
    fields = {"status": 2, "position": {"x": 0.1, "y": 0.9}, "name": None}

    items = flatten_form(fields)

    assert items == [("status", "2"), ("position[x]", "0.1"), ("position[y]", "0.9")]
    assert unflatten_form(items) == {"status": "2", "position": {"x": "0.1", "y": "0.9"}}
