# src/fhe_market/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Missing RPC / contract / relayer config means offline demo mode, not a crash.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "FHE_MARKET"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Ledger ----
    rpc_url: str
    contract_address: str
    private_key: str | None
    receipt_timeout_seconds: float
    confirm_transactions: bool

    # ---- FHE relayer ----
    relayer_url: str
    encryption_bits: int
    http_timeout_seconds: float

    # ---- Mode ----
    offline: bool

    # ---- Status / stats tuning ----
    status_success_seconds: float
    status_error_seconds: float
    active_window_seconds: float

    @property
    def log_file(self) -> Path:
        return self.data_dir / "fhe_market.log"

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "fhe-market")
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/fhe_market"))

        rpc_url = (_first_env(_k("RPC_URL"), "RPC_URL", default="") or "").strip()
        contract_address = (
            _first_env(_k("CONTRACT_ADDRESS"), "CONTRACT_ADDRESS", default="") or ""
        ).strip()
        private_key = _first_env(_k("PRIVATE_KEY"), "PRIVATE_KEY", default=None)
        relayer_url = (_first_env(_k("RELAYER_URL"), "RELAYER_URL", default="") or "").strip()

        # Offline unless every external endpoint is configured; can be forced either way.
        fully_configured = bool(rpc_url and contract_address and relayer_url)
        offline = _env_bool(_k("OFFLINE"), not fully_configured)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            rpc_url=rpc_url,
            contract_address=contract_address,
            private_key=private_key.strip() if private_key else None,
            receipt_timeout_seconds=_env_float(_k("RECEIPT_TIMEOUT_SECONDS"), 120.0),
            confirm_transactions=_env_bool(_k("CONFIRM_TRANSACTIONS"), True),
            relayer_url=relayer_url,
            encryption_bits=_env_int(_k("ENCRYPTION_BITS"), 32),
            http_timeout_seconds=_env_float(_k("HTTP_TIMEOUT_SECONDS"), 30.0),
            offline=offline,
            status_success_seconds=_env_float(_k("STATUS_SUCCESS_SECONDS"), 2.0),
            status_error_seconds=_env_float(_k("STATUS_ERROR_SECONDS"), 3.0),
            active_window_seconds=_env_float(_k("ACTIVE_WINDOW_SECONDS"), 86400.0),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
