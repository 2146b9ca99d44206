"""
Run settings for the vesting batcher.

Every knob is read from the environment (after .env is loaded) with the
defaults the mainnet distribution used. File names are parameterized by the
iteration number so staggered cohorts keep separate rosters, records and logs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from vesting_batcher.config.env import get_contract_address, load_vesting_env, project_root

DEFAULT_ITERATION = 3
DEFAULT_NETWORK = "mainnet"
DEFAULT_BATCH_SIZE = 10
DEFAULT_MAX_RETRIES = 10
DEFAULT_RETRY_DELAY_SEC = 2.0
DEFAULT_TX_TIMEOUT_SEC = 120.0
DEFAULT_INCLUSION_GRACE_SEC = 10.0

# 5 second block time: 24 * 60 * 60 / 5
DEFAULT_BLOCKS_PER_DAY = 17280
DEFAULT_VESTING_DURATION_DAYS = 730
DEFAULT_CLIFF_PERIOD_DAYS = 180
DEFAULT_START_BLOCK_OFFSET_DAYS = 3

DEFAULT_MAX_RESTARTS = 3
DEFAULT_RESTART_BASE_DELAY_SEC = 5.0

_NONE_VALUES = ("", "none", "null", "off")


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_optional_int(name: str, default: int | None) -> int | None:
    """Unset keeps the default; 'none'/'null'/'off'/empty string disables the value."""
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = raw.strip().lower()
    if raw in _NONE_VALUES:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer or one of none/null/off, got {raw!r}") from None


def _env_path(name: str, default: Path) -> Path:
    raw = (os.getenv(name) or "").strip()
    return Path(raw) if raw else default


@dataclass
class VestingConfig:
    """Config for one distribution cohort (env or explicit)."""

    iteration: int = field(default_factory=lambda: _env_int("VESTING_ITERATION", DEFAULT_ITERATION))
    network: str = field(default_factory=lambda: (os.getenv("VESTING_NETWORK") or DEFAULT_NETWORK).strip() or DEFAULT_NETWORK)
    contract_address: str = field(default_factory=get_contract_address)
    batch_size: int = field(default_factory=lambda: _env_int("BATCH_SIZE", DEFAULT_BATCH_SIZE))
    max_retries: int = field(default_factory=lambda: _env_int("MAX_RETRIES", DEFAULT_MAX_RETRIES))
    retry_delay_sec: float = field(default_factory=lambda: _env_float("RPC_RETRY_DELAY_SEC", DEFAULT_RETRY_DELAY_SEC))
    tx_timeout_sec: float = field(default_factory=lambda: _env_float("TX_TIMEOUT_SEC", DEFAULT_TX_TIMEOUT_SEC))
    inclusion_grace_sec: float = field(default_factory=lambda: _env_float("INCLUSION_GRACE_SEC", DEFAULT_INCLUSION_GRACE_SEC))
    blocks_per_day: int = field(default_factory=lambda: _env_int("BLOCKS_PER_DAY", DEFAULT_BLOCKS_PER_DAY))
    vesting_duration_days: int = field(default_factory=lambda: _env_int("VESTING_DURATION_DAYS", DEFAULT_VESTING_DURATION_DAYS))
    cliff_period_days: int = field(default_factory=lambda: _env_int("CLIFF_PERIOD_DAYS", DEFAULT_CLIFF_PERIOD_DAYS))
    start_block_offset_days: int | None = field(
        default_factory=lambda: _env_optional_int("START_BLOCK_OFFSET_DAYS", DEFAULT_START_BLOCK_OFFSET_DAYS)
    )
    max_restarts: int = field(default_factory=lambda: _env_int("MAX_RESTARTS", DEFAULT_MAX_RESTARTS))
    restart_base_delay_sec: float = field(default_factory=lambda: _env_float("RESTART_BASE_DELAY_SEC", DEFAULT_RESTART_BASE_DELAY_SEC))
    data_dir: Path = field(default_factory=lambda: _env_path("VESTING_DATA_DIR", project_root() / "data"))
    records_dir: Path = field(default_factory=lambda: _env_path("VESTING_RECORDS_DIR", project_root() / "records"))
    logs_dir: Path = field(default_factory=lambda: _env_path("VESTING_LOGS_DIR", project_root() / "logs"))

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("BATCH_SIZE must be at least 1")
        if self.max_retries < 1:
            self.max_retries = 1
        if self.retry_delay_sec < 0:
            self.retry_delay_sec = 0.0
        if self.tx_timeout_sec <= 0:
            self.tx_timeout_sec = DEFAULT_TX_TIMEOUT_SEC
        if self.inclusion_grace_sec < 0:
            self.inclusion_grace_sec = 0.0
        if self.start_block_offset_days is not None and self.start_block_offset_days < 0:
            raise ValueError("START_BLOCK_OFFSET_DAYS must be non-negative or unset")
        if self.max_restarts < 0:
            self.max_restarts = 0
        self.data_dir = Path(self.data_dir)
        self.records_dir = Path(self.records_dir)
        self.logs_dir = Path(self.logs_dir)

    @property
    def vesting_duration_blocks(self) -> int:
        return self.vesting_duration_days * self.blocks_per_day

    @property
    def cliff_period_blocks(self) -> int:
        return self.cliff_period_days * self.blocks_per_day

    @property
    def start_block_offset_blocks(self) -> int:
        if self.start_block_offset_days is None:
            return 0
        return self.start_block_offset_days * self.blocks_per_day

    @property
    def roster_path(self) -> Path:
        return self.data_dir / f"vesting_amounts{self.iteration}.csv"

    @property
    def record_path(self) -> Path:
        return self.records_dir / f"vesting_records_{self.network}{self.iteration}.csv"

    @property
    def log_path(self) -> Path:
        return self.logs_dir / f"vesting_{self.network}{self.iteration}.log"

    def ensure_dirs(self) -> None:
        """Create data/records/logs directories if they don't exist."""
        for directory in (self.data_dir, self.records_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)


def get_settings() -> VestingConfig:
    """Return settings for the current environment."""
    load_vesting_env()
    return VestingConfig()
