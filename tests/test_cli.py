from __future__ import annotations

import pytest

from devicedash.cli import _describe, _parse_assignments, build_parser


def test_parse_assignments_builds_patch_fields() -> None:
    assert _parse_assignments(["status=3", "subStatus=11", "position[x]=0.5"]) == {
        "status": "3",
        "subStatus": "11",
        "position": {"x": "0.5"},
    }


def test_parse_assignments_rejects_bare_words() -> None:
    with pytest.raises(SystemExit):
        _parse_assignments(["status"])


def test_start_subcommand_defaults() -> None:
    args = build_parser().parse_args(["start"])

    assert (args.items_minimum, args.items_maximum) == (1, 3)
    assert args.update_chance == 100
    assert args.update_interval == 5000


def test_describe_uses_status_labels() -> None:
    text = _describe({"id": 12, "name": "Tank", "zone": "East", "status": 3, "subStatus": 12})

    assert text == "#12 Tank [East] DANGER / ELECTRICAL FAULT"
    assert "42" in _describe({"id": 1, "status": 42, "subStatus": 0})


def test_describe_flags_sub_status_from_another_family() -> None:
    text = _describe({"id": 3, "name": "Gate", "zone": "North", "status": 0, "subStatus": 11})

    assert text == "#3 Gate [North] OKAY / FIRE HAZARD (mismatched family)"
