from click.testing import CliRunner

import piholeupdater.cli as cli_module


def _fake_updater(captured, exit_code=0):
    class FakeUpdater:
        VALID_DECISIONS = cli_module.StackUpdater.VALID_DECISIONS

        def __init__(self, **kwargs):
            captured.update(kwargs)

        def run(self):
            captured["mode"] = "update"
            return exit_code

        def run_check(self):
            captured["mode"] = "check"
            return exit_code

    return FakeUpdater


def test_cli_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    config_file = tmp_path / ".piholeupdater.yml"
    config_file.write_text(
        "project_dir: /srv/pihole-unbound\n"
        "dns_server: 192.168.1.10\n"
        "pull_timeout: 300\n"
        "block_sentinels: ['0.0.0.0']\n"
        "components:\n"
        "  pihole:\n"
        "    health_attempts: 20\n",
        encoding="utf-8",
    )

    captured = {}
    monkeypatch.setattr(cli_module, "StackUpdater", _fake_updater(captured))

    runner = CliRunner()
    result = runner.invoke(
        cli_module.main,
        [
            "--config",
            str(config_file),
            "--dns-server",
            "10.0.0.2",
            "--decision",
            "backup",
            "--rollback-settle-seconds",
            "5",
        ],
    )

    assert result.exit_code == 0
    assert captured["mode"] == "update"
    assert captured["project_dir"] == "/srv/pihole-unbound"
    assert captured["dns_server"] == "10.0.0.2"
    assert captured["decision"] == "backup"
    assert captured["pull_timeout"] == 300.0
    assert captured["rollback_settle_seconds"] == 5.0
    assert captured["block_sentinels"] == ("0.0.0.0",)
    assert captured["component_overrides"] == {"pihole": {"health_attempts": 20}}


def test_cli_uses_default_config_file_when_present(tmp_path, monkeypatch):
    default_config = tmp_path / ".piholeupdater.yml"
    default_config.write_text("backup_root: /mnt/backups\ncheck_only: true\n", encoding="utf-8")

    captured = {}
    monkeypatch.setattr(cli_module, "StackUpdater", _fake_updater(captured))
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(cli_module.main, [])

    assert result.exit_code == 0
    assert captured["backup_root"] == "/mnt/backups"
    assert captured["mode"] == "check"


def test_cli_propagates_run_exit_code(tmp_path, monkeypatch):
    captured = {}
    monkeypatch.setattr(cli_module, "StackUpdater", _fake_updater(captured, exit_code=2))
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(cli_module.main, ["--decision", "proceed"])

    assert result.exit_code == 2
    assert captured["compose_file"] == "docker-compose.yml"
    assert captured["decision"] == "proceed"


def test_cli_rejects_unknown_config_keys(tmp_path):
    config_file = tmp_path / "bad.yml"
    config_file.write_text("target_version: '6.0'\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(cli_module.main, ["--config", str(config_file)])

    assert result.exit_code != 0
    assert "Unknown configuration keys: target_version" in result.output


def test_cli_rejects_invalid_decision():
    runner = CliRunner()
    result = runner.invoke(cli_module.main, ["--decision", "maybe"])

    assert result.exit_code != 0
    assert "Invalid value for '--decision'" in result.output
