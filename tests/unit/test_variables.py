"""Tests for VariableSet parsing of string-valued deployment variables."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from kubestep.errors import ConfigurationError
from kubestep.variables import VariableNames, VariableSet


class TestVariableSetGet:
    def test_missing_variable_returns_default(self) -> None:
        variables = VariableSet()
        assert variables.get("Nope") is None
        assert variables.get("Nope", "fallback") == "fallback"

    def test_empty_value_treated_as_missing(self) -> None:
        variables = VariableSet({"Name": ""})
        assert variables.get("Name", "fallback") == "fallback"
        assert "Name" in variables

    def test_set_none_removes(self) -> None:
        variables = VariableSet({"Name": "value"})
        variables.set("Name", None)
        assert "Name" not in variables
        assert len(variables) == 0

    def test_require_raises_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError, match="Octopus.Action.Kubernetes.ClusterUrl"):
            VariableSet().require(VariableNames.CLUSTER_URL)

    def test_names_are_case_sensitive(self) -> None:
        variables = VariableSet({"Name": "value"})
        assert variables.get("name") is None


class TestVariableSetFlags:
    @pytest.mark.parametrize("token", ["True", "true", "TRUE", " True "])
    def test_true_tokens(self, token: str) -> None:
        assert VariableSet({"Flag": token}).get_flag("Flag") is True

    @pytest.mark.parametrize("token", ["False", "false"])
    def test_false_tokens(self, token: str) -> None:
        assert VariableSet({"Flag": token}).get_flag("Flag", default=True) is False

    def test_missing_flag_uses_default(self) -> None:
        assert VariableSet().get_flag("Flag", default=True) is True

    @pytest.mark.parametrize("token", ["yes", "1", "on", "Tru"])
    def test_other_tokens_rejected(self, token: str) -> None:
        with pytest.raises(ConfigurationError, match="must be 'True' or 'False'"):
            VariableSet({"Flag": token}).get_flag("Flag")


class TestVariableSetIntegers:
    def test_decimal_string(self) -> None:
        assert VariableSet({"Timeout": "180"}).get_int("Timeout", 0) == 180

    def test_missing_uses_default(self) -> None:
        assert VariableSet().get_int("Timeout", 42) == 42

    @pytest.mark.parametrize("value", ["-1", "1.5", "ten", "0x10"])
    def test_non_decimal_rejected(self, value: str) -> None:
        with pytest.raises(ConfigurationError, match="whole number"):
            VariableSet({"Timeout": value}).get_int("Timeout", 0)


class TestVariableSetLists:
    def test_splits_on_newlines_and_semicolons(self) -> None:
        variables = VariableSet({"Files": "a.yml;b.yml\n c.yml \n\n"})
        assert variables.get_list("Files") == ["a.yml", "b.yml", "c.yml"]

    def test_missing_is_empty(self) -> None:
        assert VariableSet().get_list("Files") == []


class TestFromJsonFile:
    def test_loads_flat_object(self, tmp_path: Path) -> None:
        path = tmp_path / "variables.json"
        path.write_text(json.dumps({"A": "1", "B": True, "C": None}), encoding="utf-8")

        variables = VariableSet.from_json_file(path)

        assert variables.get("A") == "1"
        assert variables.get("B") == "True"
        assert variables.get("C") is None

    def test_rejects_non_object(self, tmp_path: Path) -> None:
        path = tmp_path / "variables.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="JSON object"):
            VariableSet.from_json_file(path)

    def test_rejects_malformed_json(self, tmp_path: Path) -> None:
        path = tmp_path / "variables.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Unable to read variables file"):
            VariableSet.from_json_file(path)


class TestVariableNames:
    def test_account_derived_names(self) -> None:
        assert VariableNames.aws_access_key("Accounts-1") == "Accounts-1.AccessKey"
        assert VariableNames.aws_secret_key("Accounts-1") == "Accounts-1.SecretKey"
        assert VariableNames.certificate_pem("Certificates-2") == "Certificates-2.CertificatePem"
