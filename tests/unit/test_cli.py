"""Test the click commands."""

import json

from click.testing import CliRunner

from workshop_lifecycle.cli import main


def test_transitions_order():
    result = CliRunner().invoke(main, ["transitions"])
    assert result.exit_code == 0
    assert "order transitions:" in result.output
    assert "delivered" in result.output
    assert "(terminal)" in result.output


def test_transitions_execution():
    result = CliRunner().invoke(main, ["transitions", "--machine", "execution"])
    assert result.exit_code == 0
    lines = [line.split() for line in result.output.splitlines()[1:]]
    assert ["assigned", "->", "in_progress"] in lines


def test_transitions_unknown_machine():
    result = CliRunner().invoke(main, ["transitions", "--machine", "invoice"])
    assert result.exit_code != 0


def test_show_config_reads_toml(tmp_path):
    config = tmp_path / "workshop.toml"
    config.write_text('shop_name = "Garage Nord"\n\n[budget]\ndefault_validity_days = 14\n')

    result = CliRunner().invoke(main, ["show-config", "--config", str(config)])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["shop_name"] == "Garage Nord"
    assert payload["budget"]["default_validity_days"] == 14


def test_show_config_rejects_bad_values(tmp_path):
    config = tmp_path / "workshop.toml"
    config.write_text("[budget]\ndefault_validity_days = 0\n")
    result = CliRunner().invoke(main, ["show-config", "--config", str(config)])
    assert result.exit_code != 0
