"""Tests for roc.configuration.validator -- collecting every failing value."""

from __future__ import annotations

import copy

from roc.configuration.validator import run_validator, validate
from roc.configuration.validators import is_boolean, is_integer, required
from roc.models import MetaLeaf


def _raises(value):
    raise ValueError("broken")


class TestRunValidator:
    def test_true_and_none_pass(self) -> None:
        assert run_validator(lambda v: True, 1) is None
        assert run_validator(lambda v: None, 1) is None

    def test_false_gives_generic_message(self) -> None:
        assert run_validator(lambda v: False, 5) == "Invalid value 5"

    def test_string_is_message(self) -> None:
        assert run_validator(lambda v: "too small", 5) == "too small"

    def test_value_error_is_message(self) -> None:
        assert run_validator(_raises, 5) == "broken"

    def test_unexpected_exception_is_message(self) -> None:
        message = run_validator(lambda v: v.startswith("x"), 3)
        assert message is not None
        assert "AttributeError" in message


class TestValidate:
    def test_valid_config_has_no_errors(self) -> None:
        meta = {"build": {"port": MetaLeaf(validator=is_integer)}}
        assert validate({"build": {"port": 3000}}, meta) == []

    def test_collects_every_error(self) -> None:
        meta = {
            "build": {
                "port": MetaLeaf(validator=is_integer),
                "workers": MetaLeaf(validator=is_integer),
                "minify": MetaLeaf(validator=is_boolean),
                "debug": MetaLeaf(validator=is_boolean),
                "name": MetaLeaf(validator=required(is_integer)),
            }
        }
        config = {"build": {"port": "http", "workers": 4, "minify": "yes", "debug": False}}

        errors = validate(config, meta)

        assert len(errors) == 3
        assert [e.path for e in errors] == ["build.port", "build.minify", "build.name"]
        assert errors[0].value == "http"
        assert errors[2].message == "A value is required"

    def test_crashing_validator_does_not_stop_collection(self) -> None:
        meta = {
            "a": MetaLeaf(validator=lambda v: v.startswith("x")),
            "b": MetaLeaf(validator=lambda v: False),
            "c": MetaLeaf(validator=lambda v: v["key"]),
        }

        errors = validate({"a": 3, "b": 1}, meta)

        assert [e.path for e in errors] == ["a", "b", "c"]
        assert errors[2].value is None

    def test_keys_without_validator_pass(self) -> None:
        meta = {"anything": MetaLeaf(description="Free form.")}
        assert validate({"anything": object()}, meta) == []

    def test_config_is_not_modified(self) -> None:
        config = {"build": {"port": "x"}}
        snapshot = copy.deepcopy(config)
        validate(config, {"build": {"port": MetaLeaf(validator=is_integer)}})
        assert config == snapshot
