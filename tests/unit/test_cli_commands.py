import json
import sys
import types
from contextlib import contextmanager
from pathlib import Path
import textwrap

from click.testing import CliRunner

from pagewright.cli import cli
from tests.conftest import FakeDriver, FakeNode


def write_multi_doc_yaml(tmp_path: Path) -> Path:
    y = textwrap.dedent(
        """
        pages:
          - name: LoginPage
            url: {regex: "^:base_url/login"}
            entry_url: ":base_url/login"
            elements:
              - {name: login_form, kind: form, validator: true}
              - {name: login_field, kind: text_field}
        ---
        pages:
          - name: DashboardPage
            url: {regex: "^:base_url/dashboard"}
            elements:
              - {name: feed, validator: true}
        """
    )
    p = tmp_path / "demo.yaml"
    p.write_text(y, encoding="utf-8")
    return p


def test_cli_list_with_multi_doc(tmp_path: Path):
    write_multi_doc_yaml(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["list", "--dir", str(tmp_path), "--no-recursive"])
    assert result.exit_code == 0
    assert "Found 2 page(s)" in result.output
    assert "LoginPage  (2 elements, 1 validators)" in result.output


def test_cli_validate_with_dir(tmp_path: Path):
    write_multi_doc_yaml(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["validate", "--dir", str(tmp_path), "--no-recursive"])
    assert result.exit_code == 0
    assert result.output.count("OK  ") == 2


def test_cli_validate_reports_errors(tmp_path: Path):
    good = write_multi_doc_yaml(tmp_path)
    bad = tmp_path / "bad.yaml"
    bad.write_text("pages:\n  - name: Broken\n    extends: Nowhere\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["validate", str(good), str(bad)])
    assert result.exit_code == 1
    assert "ERR " in result.output and "Nowhere" in result.output


def test_cli_validate_needs_targets():
    result = CliRunner().invoke(cli, ["validate"])
    assert result.exit_code == 2


def test_cli_config_prints_json():
    result = CliRunner().invoke(cli, ["config"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["ARRIVAL_ATTEMPTS"] >= 1
    assert "TRANSITION_INTERVAL_MS" in data


def test_cli_enter_with_fake_browser(tmp_path: Path, monkeypatch):
    pages = write_multi_doc_yaml(tmp_path)
    driver = FakeDriver(nodes=[FakeNode("form", id="login_form")])

    @contextmanager
    def fake_launch(settings=None):
        yield driver

    fake_module = types.ModuleType("pagewright.driver.playwright_driver")
    fake_module.launch_driver = fake_launch
    monkeypatch.setitem(sys.modules, "pagewright.driver.playwright_driver", fake_module)
    monkeypatch.setenv("VALIDATOR_WAIT_MS", "0")

    result = CliRunner().invoke(
        cli, ["enter", str(pages), "LoginPage", "--base-url", "https://app.test", "--no-replay"]
    )

    assert result.exit_code == 0, result.output
    assert "OK  LoginPage  ->  https://app.test/login" in result.output
    assert driver.navigations == ["https://app.test/login"]
