"""Shared domain models for PiholeUpdater."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from piholeupdater.errors import StepError


class RunOutcome(Enum):
    NO_UPDATE_NEEDED = "no_update_needed"
    SUCCESS = "success"
    FAILED_ROLLED_BACK = "failed_rolled_back"
    FAILED_ROLLBACK_FAILED = "failed_rollback_failed"
    FAILED_NOT_ROLLED_BACK = "failed_not_rolled_back"
    CANCELLED_BY_USER = "cancelled_by_user"
    ABORTED = "aborted"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    RunOutcome.NO_UPDATE_NEEDED: 0,
    RunOutcome.SUCCESS: 0,
    RunOutcome.ABORTED: 1,
    RunOutcome.FAILED_ROLLED_BACK: 2,
    RunOutcome.FAILED_ROLLBACK_FAILED: 3,
    RunOutcome.CANCELLED_BY_USER: 4,
    RunOutcome.FAILED_NOT_ROLLED_BACK: 5,
}


class Decision(Enum):
    PROCEED = "proceed"
    BACKUP_THEN_PROCEED = "backup"
    CANCEL = "cancel"


class StepState(Enum):
    PENDING = "pending"
    APPLYING = "applying"
    HEALTH_POLLING = "health_polling"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    APPLY_FAILED = "apply_failed"


@dataclass(frozen=True)
class ComponentSpec:
    """Declared component of the stack and its per-component budgets."""

    name: str
    match: str
    image: str
    rank: int
    build: bool = False
    probe: Tuple[str, ...] = ()
    probe_expect: Optional[str] = None
    health_attempts: int = 10
    health_interval: float = 5.0
    settle_seconds: float = 10.0
    version_cmd: Tuple[str, ...] = ()
    version_pattern: Optional[str] = None
    config_files: Tuple[str, ...] = ()
    volumes: Tuple[str, ...] = ()
    update_effort: str = "LOW"
    risk_level: str = "LOW"
    service: Optional[str] = None
    container: Optional[str] = None


@dataclass(frozen=True)
class Environment:
    """Runtime identifiers discovered once per execution."""

    run_id: str
    project_dir: str
    compose_file: str
    compose_cmd: Tuple[str, ...]
    dns_server: str
    volume_prefix: str
    components: Tuple[ComponentSpec, ...]
    backup_root: str
    log_dir: str

    def component(self, name: str) -> ComponentSpec:
        for spec in self.components:
            if spec.name == name:
                return spec
        raise KeyError(name)

    @property
    def volumes(self) -> Tuple[str, ...]:
        names: List[str] = []
        for spec in self.components:
            names.extend(spec.volumes)
        return tuple(names)


@dataclass(frozen=True)
class ComponentIdentity:
    name: str
    running_version_tag: str
    running_content_hash: Optional[str]
    latest_content_hash: Optional[str]
    dependency_rank: int
    image_age_days: Optional[int] = None

    @property
    def is_known(self) -> bool:
        return bool(self.running_content_hash) and bool(self.latest_content_hash)

    @property
    def is_outdated(self) -> bool:
        return self.is_known and self.running_content_hash != self.latest_content_hash


@dataclass(frozen=True)
class UpdatePlan:
    entries: Tuple[ComponentIdentity, ...] = ()
    unknown: Tuple[str, ...] = ()

    def __iter__(self) -> Iterator[ComponentIdentity]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def names(self) -> List[str]:
        return [entry.name for entry in self.entries]


@dataclass(frozen=True)
class BackupSnapshot:
    timestamp: str
    location: str
    source_config_copy: str
    volume_archives: Dict[str, str] = field(default_factory=dict)
    config_captures: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProbeResult:
    passed: bool
    detail: str = ""


@dataclass
class StepResult:
    component: str
    state: StepState = StepState.PENDING
    attempts: int = 0
    detail: str = ""


@dataclass
class ExecutionResult:
    steps: List[StepResult] = field(default_factory=list)
    error: Optional[StepError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def failed_component(self) -> Optional[str]:
        return self.error.component if self.error else None


@dataclass(frozen=True)
class CheckResult:
    name: str
    passed: bool
    detail: str = ""
    informational: bool = False


@dataclass
class VerificationResult:
    checks: List[CheckResult] = field(default_factory=list)

    @property
    def failed_checks(self) -> List[str]:
        return [check.name for check in self.checks if not check.informational and not check.passed]

    @property
    def failed(self) -> bool:
        return bool(self.failed_checks)
