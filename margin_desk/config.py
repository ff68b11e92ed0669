"""
Config loader — reads .env and config.json into an immutable AppConfig.

Addresses and secrets come from the environment (.env); tunables such as poll
intervals and gas limits come from an optional config.json. The config is built
once at startup and handed to every component that needs it.
"""
from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from dotenv import load_dotenv
from eth_account import Account
from web3 import Web3

from margin_desk.errors import ConfigError

# Load .env from the project root (one level above margin_desk/)
_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_ROOT / ".env")

CONFIG_PATH = _ROOT / "config.json"

SUPPORTED_TOKENS = ("WETH", "DAI", "USDC", "WBTC")

_CONTRACT_VARS = {
    "price_feed": "PRICEFEEDL1_ADDRESS",
    "positions": "POSITIONS_ADDRESS",
    "market": "MARKET_ADDRESS",
    "pool_factory": "LIQUIDITYPOOLFACTORY_ADDRESS",
    "fee_manager": "FEEMANAGER_ADDRESS",
}


@dataclass(frozen=True)
class ContractAddresses:
    price_feed: str
    positions: str
    market: str
    pool_factory: str
    fee_manager: str


@dataclass(frozen=True)
class NotificationSettings:
    on_liquidation: bool = True
    on_cycle_error: bool = False


@dataclass(frozen=True)
class AppConfig:
    rpc_url: str
    private_key: str = field(repr=False)
    contracts: ContractAddresses
    tokens: Mapping[str, str]
    telegram_bot_token: str = field(default="", repr=False)
    telegram_chat_id: str = ""
    notifications: NotificationSettings = NotificationSettings()
    liquidation_interval_seconds: float = 10.0
    wallet_poll_interval_seconds: float = 15.0
    protocol_poll_interval_seconds: float = 30.0
    receipt_timeout_seconds: float = 180.0
    scan_max_concurrency: int | None = None
    pool_fee: int = 3000
    open_gas_limit: int = 5_000_000
    close_gas_limit: int = 2_000_000

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    def token_address(self, key: str) -> str:
        """Look up a supported token by symbol key ("WETH", "USDC", ...)."""
        try:
            return self.tokens[key.upper()]
        except KeyError:
            raise ConfigError(
                f"Unknown token '{key}'. Supported tokens: {', '.join(self.tokens)}"
            ) from None


def _require(env: Mapping[str, str], name: str) -> str:
    value = (env.get(name) or "").strip()
    if not value:
        raise ConfigError(f"{name} is not set. Copy .env.example to .env and fill it in.")
    return value


def _require_address(env: Mapping[str, str], name: str) -> str:
    value = _require(env, name)
    try:
        return Web3.to_checksum_address(value)
    except ValueError as exc:
        raise ConfigError(f"{name} is not a valid address: {value!r}") from exc


def _require_private_key(env: Mapping[str, str]) -> str:
    value = _require(env, "PRIVATE_KEY")
    try:
        Account.from_key(value)
    except Exception as exc:
        raise ConfigError("PRIVATE_KEY is not a valid private key") from exc
    return value


def _optional_positive_int(raw: dict, name: str) -> int | None:
    value = raw.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{name} must be a positive integer or null, got {value!r}")
    return value


def _read_json(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path.name} is not valid JSON: {exc}") from exc


def load_config(
    env: Mapping[str, str] | None = None,
    config_path: Path = CONFIG_PATH,
) -> AppConfig:
    """Load and validate configuration from the environment and config.json."""
    env = os.environ if env is None else env

    rpc_url = _require(env, "RPC_URL")
    private_key = _require_private_key(env)
    contracts = ContractAddresses(
        **{attr: _require_address(env, var) for attr, var in _CONTRACT_VARS.items()}
    )
    tokens = {key: _require_address(env, key) for key in SUPPORTED_TOKENS}

    raw = _read_json(config_path)
    notif_raw = raw.get("notifications", {})
    notifications = NotificationSettings(
        on_liquidation=notif_raw.get("on_liquidation", True),
        on_cycle_error=notif_raw.get("on_cycle_error", False),
    )

    max_concurrency = _optional_positive_int(raw, "scan_max_concurrency")

    try:
        return AppConfig(
            rpc_url=rpc_url,
            private_key=private_key,
            contracts=contracts,
            tokens=MappingProxyType(tokens),
            telegram_bot_token=env.get("TELEGRAM_BOT_TOKEN", ""),
            telegram_chat_id=env.get("TELEGRAM_CHAT_ID", ""),
            notifications=notifications,
            liquidation_interval_seconds=float(raw.get("liquidation_interval_seconds", 10)),
            wallet_poll_interval_seconds=float(raw.get("wallet_poll_interval_seconds", 15)),
            protocol_poll_interval_seconds=float(raw.get("protocol_poll_interval_seconds", 30)),
            receipt_timeout_seconds=float(raw.get("receipt_timeout_seconds", 180)),
            scan_max_concurrency=max_concurrency,
            pool_fee=int(raw.get("pool_fee", 3000)),
            open_gas_limit=int(raw.get("open_gas_limit", 5_000_000)),
            close_gas_limit=int(raw.get("close_gas_limit", 2_000_000)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value in {config_path.name}: {exc}") from exc
