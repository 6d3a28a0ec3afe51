import pytest

from piholeupdater.errors_catalog import actionable_error


def test_actionable_error_formats_message_with_suggested_action():
    message = actionable_error("components_not_running", containers="pihole", project_dir="/srv/stack")

    assert "Containers are not running: pihole" in message
    assert "Suggested action:" in message
    assert "cd /srv/stack && docker compose up -d" in message


def test_rollback_failed_points_at_backup_location():
    message = actionable_error(
        "rollback_failed",
        reason="could not start the stack",
        log_file="/var/log/update.log",
        backup="/backups/20240101-120000",
    )

    assert "Manual recovery required" in message
    assert "/backups/20240101-120000" in message


def test_unknown_catalog_key_raises():
    with pytest.raises(KeyError):
        actionable_error("does_not_exist")
