"""
Environment-driven configuration with validation.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from lpkeeper.config.networks import NETWORKS, NetworkConfig, get_network
from lpkeeper.errors import ConfigError

load_dotenv()

log = logging.getLogger("lpkeeper")

EXIT_MODES = ("multicall", "sequential")
TRIGGER_MODES = ("block", "interval")
HEDGE_MODES = ("aave", "none")
WEBHOOK_TYPES = ("generic", "slack", "discord")


def env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key)
    if val is None:
        return default
    return val.lower() in {"1", "true", "yes", "y"}


@dataclass(frozen=True)
class Settings:
    network_name: str
    rpc_url: str
    rpc_fallback_url: str | None
    private_key: str | None
    state_dir: str
    log_file: str | None
    # Range and rebalance
    range_width_ticks: int
    slippage_bps: int
    min_rebalance_usd: float
    exit_mode: str
    # Retry / timeout harness
    max_retries: int
    retry_base_sec: float
    tx_timeout_sec: float
    tx_deadline_sec: int
    rpc_timeout_sec: float
    # Triggers
    trigger_mode: str
    block_poll_sec: float
    interval_sec: float
    stale_after_sec: float
    reconnect_after_errors: int
    # Hedge / safe mode
    hedge_mode: str
    hedge_interval_sec: float
    min_health_factor: float
    safe_mode_log_every: int
    # Alerting
    alert_webhook_url: str | None
    alert_webhook_type: str
    alert_enabled: bool
    # Ops
    metrics_port: int
    shutdown_grace_sec: float

    def dump(self) -> dict:
        """Settings as a dict with the key redacted."""
        data = self.__dict__.copy()
        if data.get("private_key"):
            data["private_key"] = "***"
        return data

    @property
    def network(self) -> NetworkConfig:
        return get_network(self.network_name)

    @classmethod
    def load(cls) -> "Settings":
        def _int_env(key: str, default: int) -> int:
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            return int(raw)

        def _float_env(key: str, default: float) -> float:
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            return float(raw)

        cfg = cls(
            network_name=os.getenv("LP_NETWORK", "SEPOLIA").upper(),
            rpc_url=os.getenv("LP_RPC_URL", ""),
            rpc_fallback_url=os.getenv("LP_RPC_FALLBACK_URL") or None,
            private_key=os.getenv("LP_PRIVATE_KEY"),
            state_dir=os.getenv("LP_STATE_DIR", "state"),
            log_file=os.getenv("LP_LOG_FILE", "lpkeeper.log") or None,
            range_width_ticks=_int_env("LP_RANGE_WIDTH_TICKS", 2000),
            slippage_bps=_int_env("LP_SLIPPAGE_BPS", 50),
            min_rebalance_usd=_float_env("LP_MIN_REBALANCE_USD", 2.0),
            exit_mode=os.getenv("LP_EXIT_MODE", "multicall").lower(),
            max_retries=_int_env("LP_MAX_RETRIES", 3),
            retry_base_sec=_float_env("LP_RETRY_BASE_SEC", 1.0),
            tx_timeout_sec=_float_env("LP_TX_TIMEOUT_SEC", 120.0),
            tx_deadline_sec=_int_env("LP_TX_DEADLINE_SEC", 120),
            rpc_timeout_sec=_float_env("LP_RPC_TIMEOUT_SEC", 15.0),
            trigger_mode=os.getenv("LP_TRIGGER_MODE", "block").lower(),
            block_poll_sec=_float_env("LP_BLOCK_POLL_SEC", 2.0),
            interval_sec=_float_env("LP_INTERVAL_SEC", 300.0),
            stale_after_sec=_float_env("LP_STALE_AFTER_SEC", 60.0),
            reconnect_after_errors=_int_env("LP_RECONNECT_AFTER_ERRORS", 3),
            hedge_mode=os.getenv("LP_HEDGE_MODE", "aave").lower(),
            hedge_interval_sec=_float_env("LP_HEDGE_INTERVAL_SEC", 60.0),
            min_health_factor=_float_env("LP_MIN_HEALTH_FACTOR", 1.5),
            safe_mode_log_every=_int_env("LP_SAFE_MODE_LOG_EVERY", 100),
            alert_webhook_url=os.getenv("LP_ALERT_WEBHOOK_URL") or None,
            alert_webhook_type=os.getenv("LP_ALERT_WEBHOOK_TYPE", "generic").lower(),
            alert_enabled=env_bool("LP_ALERT_ENABLED", True),
            metrics_port=_int_env("LP_METRICS_PORT", 0),
            shutdown_grace_sec=_float_env("LP_SHUTDOWN_GRACE_SEC", 30.0),
        )
        cfg._validate()
        _sanity_check(cfg)
        return cfg

    def resolve_signer(self):
        from eth_account import Account

        if not self.private_key:
            raise ConfigError("Missing credentials: set LP_PRIVATE_KEY")
        return Account.from_key(self.private_key)

    def resolve_account(self) -> str:
        return self.resolve_signer().address

    def _validate(self) -> None:
        if self.network_name not in NETWORKS:
            raise ConfigError(f"LP_NETWORK must be one of {sorted(NETWORKS)}")
        if not self.rpc_url:
            raise ConfigError("LP_RPC_URL is required")
        if self.range_width_ticks <= 0:
            raise ConfigError("LP_RANGE_WIDTH_TICKS must be > 0")
        if not 0 <= self.slippage_bps < 10_000:
            raise ConfigError("LP_SLIPPAGE_BPS must be in [0, 10000)")
        if self.min_rebalance_usd < 0:
            raise ConfigError("LP_MIN_REBALANCE_USD must be >= 0")
        if self.max_retries < 0:
            raise ConfigError("LP_MAX_RETRIES must be >= 0")
        if self.tx_timeout_sec <= 0 or self.rpc_timeout_sec <= 0:
            raise ConfigError("Timeouts must be > 0")
        if self.exit_mode not in EXIT_MODES:
            raise ConfigError(f"LP_EXIT_MODE must be one of {EXIT_MODES}")
        if self.trigger_mode not in TRIGGER_MODES:
            raise ConfigError(f"LP_TRIGGER_MODE must be one of {TRIGGER_MODES}")
        if self.hedge_mode not in HEDGE_MODES:
            raise ConfigError(f"LP_HEDGE_MODE must be one of {HEDGE_MODES}")
        if self.alert_webhook_type not in WEBHOOK_TYPES:
            raise ConfigError(f"LP_ALERT_WEBHOOK_TYPE must be one of {WEBHOOK_TYPES}")
        if self.block_poll_sec <= 0 or self.interval_sec <= 0:
            raise ConfigError("Trigger intervals must be > 0")
        if self.safe_mode_log_every <= 0:
            raise ConfigError("LP_SAFE_MODE_LOG_EVERY must be > 0")

        if self.slippage_bps > 300:
            log.warning(
                f"WARNING: LP_SLIPPAGE_BPS={self.slippage_bps} is loose. "
                "Swaps and mints may fill far from the quoted price."
            )
        if self.range_width_ticks < 100:
            log.warning(
                f"WARNING: LP_RANGE_WIDTH_TICKS={self.range_width_ticks} is narrow. "
                "Expect frequent rebalances and fee drag."
            )
        if self.hedge_mode == "none":
            log.warning(
                "WARNING: LP_HEDGE_MODE=none. Health checks always pass and safe mode cannot trip."
            )
        if self.tx_deadline_sec > self.tx_timeout_sec:
            log.warning(
                "WARNING: LP_TX_DEADLINE_SEC exceeds LP_TX_TIMEOUT_SEC. "
                "A timed-out transaction may still execute after we stop waiting."
            )


def _sanity_check(cfg: Settings) -> None:
    """Log critical settings once at startup so overrides are obvious."""
    payload = {
        "event": "config_loaded",
        "network": cfg.network_name,
        "range_width_ticks": cfg.range_width_ticks,
        "slippage_bps": cfg.slippage_bps,
        "min_rebalance_usd": cfg.min_rebalance_usd,
        "exit_mode": cfg.exit_mode,
        "trigger_mode": cfg.trigger_mode,
        "hedge_mode": cfg.hedge_mode,
    }
    log.info(json.dumps(payload))
