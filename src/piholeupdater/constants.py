"""Defaults shared across PiholeUpdater services."""

import os

DIR_MODE = 0o750
FILE_MODE = 0o640

COMPOSE_FILE_NAME = "docker-compose.yml"
DEFAULT_PROJECT_DIR = os.path.join("~", "pihole-unbound")
DEFAULT_BACKUP_ROOT = os.path.join("~", "pihole-backups")
DEFAULT_LOG_DIR = os.path.join(DEFAULT_BACKUP_ROOT, "logs")
DEFAULT_CONFIG_FILE = ".piholeupdater.yml"

MIN_COMPOSE_VERSION = "1.29.0"
HELPER_IMAGE = "alpine"

DEFAULT_RESOLVE_DOMAIN = "google.com"
DEFAULT_BLOCKED_DOMAIN = "doubleclick.net"
DEFAULT_BLOCK_SENTINELS = ("0.0.0.0", "::")
DEFAULT_CACHE_MISS_DOMAIN = "test-{stamp}.example.com"

DEFAULT_COMMAND_TIMEOUT = 120.0
DEFAULT_PULL_TIMEOUT = 600.0
DEFAULT_DNS_TIMEOUT = 5.0
DEFAULT_ROLLBACK_SETTLE_SECONDS = 30.0

LOG_ERROR_PATTERN = r"error|critical"
LOG_ERROR_IGNORED = (r"recovered.*frames from WAL",)

# Declared stack. Rank order is cache, then resolver, then blocking frontend.
DEFAULT_COMPONENTS = (
    {
        "name": "redis",
        "match": "redis",
        "image": "redis:7-alpine",
        "rank": 1,
        "probe": ("redis-cli", "ping"),
        "probe_expect": "PONG",
        "health_attempts": 10,
        "health_interval": 5.0,
        "settle_seconds": 10.0,
        "version_cmd": ("redis-server", "--version"),
        "version_pattern": r"v=([0-9.]+)",
        "update_effort": "LOW (pull image)",
        "risk_level": "LOW (cache data regenerates)",
    },
    {
        "name": "unbound",
        "match": "unbound",
        "image": "alpine:latest",
        "rank": 2,
        "build": True,
        "probe": ("drill", "@127.0.0.1", "cloudflare.com"),
        "health_attempts": 10,
        "health_interval": 5.0,
        "settle_seconds": 10.0,
        "version_cmd": ("unbound", "-V"),
        "version_pattern": r"Version ([0-9.]+)",
        "update_effort": "MEDIUM (rebuild required)",
        "risk_level": "LOW (config preserved)",
    },
    {
        "name": "pihole",
        "match": "pihole",
        "image": "pihole/pihole:latest",
        "rank": 3,
        "probe": ("pihole", "status"),
        "health_attempts": 12,
        "health_interval": 5.0,
        "settle_seconds": 20.0,
        "version_cmd": ("pihole", "-v"),
        "version_pattern": r"Core version[^0-9]*v?([0-9][0-9.]*)",
        "config_files": ("/etc/pihole/pihole.toml", "/etc/pihole/setupVars.conf"),
        "volumes": ("pihole-config", "pihole-dnsmasq"),
        "update_effort": "LOW (pull image)",
        "risk_level": "MEDIUM",
    },
)
