import logging
import os

import click
from rich.logging import RichHandler

from .constants import (
    COMPOSE_FILE_NAME,
    DEFAULT_BACKUP_ROOT,
    DEFAULT_BLOCK_SENTINELS,
    DEFAULT_BLOCKED_DOMAIN,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONFIG_FILE,
    DEFAULT_LOG_DIR,
    DEFAULT_PULL_TIMEOUT,
    DEFAULT_RESOLVE_DOMAIN,
    DEFAULT_ROLLBACK_SETTLE_SECONDS,
)
from .core import StackUpdater, UpdaterError
from .services.config_loader import ConfigLoader
from .services.run_log import ConsoleNoiseFilter


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


console_handler = RichHandler(rich_tracebacks=True, show_level=False, show_path=False)

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[console_handler],
)


@click.command()
@click.option(
    "--project-dir",
    required=False,
    type=click.Path(file_okay=False),
    help="Directory holding docker-compose.yml (default: current directory, then ~/pihole-unbound).",
)
@click.option("--compose-file", required=False, help="Compose file name inside the project directory.")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--backup-root", required=False, type=click.Path(), help="Directory for backup snapshots.")
@click.option("--log-dir", required=False, type=click.Path(), help="Directory for run logs and manifests.")
@click.option("--log-file", type=click.Path(), help="Path to the run log file (overrides --log-dir naming).")
@click.option("--dns-server", required=False, help="Address DNS checks are sent to (default: this device's IP).")
@click.option("--resolve-domain", required=False, help="Domain that must resolve after the update.")
@click.option("--blocked-domain", required=False, help="Domain that must be blocked after the update.")
@click.option(
    "--decision",
    required=False,
    type=click.Choice(StackUpdater.VALID_DECISIONS),
    help="Answer the update prompt non-interactively: proceed, backup (then proceed) or cancel.",
)
@click.option(
    "--check-only",
    is_flag=True,
    default=None,
    help="Print a health report of the running stack without updating anything.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option(
    "--command-timeout",
    required=False,
    type=float,
    default=None,
    help="Timeout in seconds for docker commands.",
)
@click.option(
    "--pull-timeout",
    required=False,
    type=float,
    default=None,
    help="Timeout in seconds for image pulls.",
)
@click.option(
    "--rollback-settle-seconds",
    required=False,
    type=float,
    default=None,
    help="Seconds to wait after restarting the stack during rollback.",
)
def main(
    project_dir,
    compose_file,
    config,
    backup_root,
    log_dir,
    log_file,
    dns_server,
    resolve_domain,
    blocked_domain,
    decision,
    check_only,
    verbose,
    command_timeout,
    pull_timeout,
    rollback_settle_seconds,
):
    """Safely update a Pi-hole + Unbound + Redis docker-compose stack."""
    logger = logging.getLogger("piholeupdater")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except UpdaterError as exc:
        raise click.ClickException(str(exc)) from exc

    project_dir = _resolve_option(project_dir, config_values, "project_dir")
    compose_file = _resolve_option(compose_file, config_values, "compose_file", default=COMPOSE_FILE_NAME)
    backup_root = _resolve_option(backup_root, config_values, "backup_root", default=DEFAULT_BACKUP_ROOT)
    log_dir = _resolve_option(log_dir, config_values, "log_dir", default=DEFAULT_LOG_DIR)
    log_file = _resolve_option(log_file, config_values, "log_file")
    dns_server = _resolve_option(dns_server, config_values, "dns_server")
    resolve_domain = _resolve_option(resolve_domain, config_values, "resolve_domain", default=DEFAULT_RESOLVE_DOMAIN)
    blocked_domain = _resolve_option(blocked_domain, config_values, "blocked_domain", default=DEFAULT_BLOCKED_DOMAIN)
    block_sentinels = tuple(config_values.get("block_sentinels") or DEFAULT_BLOCK_SENTINELS)
    decision = _resolve_option(decision, config_values, "decision")
    check_only = bool(_resolve_option(check_only, config_values, "check_only", default=False))
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    command_timeout = float(
        _resolve_option(command_timeout, config_values, "command_timeout", default=DEFAULT_COMMAND_TIMEOUT)
    )
    pull_timeout = float(_resolve_option(pull_timeout, config_values, "pull_timeout", default=DEFAULT_PULL_TIMEOUT))
    rollback_settle_seconds = float(
        _resolve_option(
            rollback_settle_seconds,
            config_values,
            "rollback_settle_seconds",
            default=DEFAULT_ROLLBACK_SETTLE_SECONDS,
        )
    )

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)
        if not any(isinstance(item, ConsoleNoiseFilter) for item in console_handler.filters):
            console_handler.addFilter(ConsoleNoiseFilter())

    try:
        updater = StackUpdater(
            project_dir=project_dir,
            compose_file=compose_file,
            backup_root=backup_root,
            log_dir=log_dir,
            log_file=log_file,
            dns_server=dns_server,
            resolve_domain=resolve_domain,
            blocked_domain=blocked_domain,
            block_sentinels=block_sentinels,
            verbose=verbose,
            decision=decision,
            command_timeout=command_timeout,
            pull_timeout=pull_timeout,
            rollback_settle_seconds=rollback_settle_seconds,
            component_overrides=config_values.get("components"),
        )
    except UpdaterError as exc:
        raise click.ClickException(str(exc)) from exc

    if check_only:
        raise SystemExit(updater.run_check())
    raise SystemExit(updater.run())


if __name__ == "__main__":
    main()
