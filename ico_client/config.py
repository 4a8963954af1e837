# ico_client/config.py

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from solders.pubkey import Pubkey

from .core.constants import (
    DEFAULT_LAMPORTS_PER_TOKEN,
    DEFAULT_MAX_USER_TOTAL_LIMIT,
    DEFAULT_NETWORK_FEE_RESERVE_LAMPORTS,
    DEFAULT_TOKEN_DECIMALS,
)
from .core.exceptions import ConfigError
from .utils.logger import get_logger

logger = get_logger(__name__)

REQUIRED_VARS = ("SOLANA_NODE_RPC_ENDPOINT", "ICO_PROGRAM_ID", "ICO_MINT")

OPTIONAL_DEFAULTS: Dict[str, Any] = {
    "LAMPORTS_PER_TOKEN": DEFAULT_LAMPORTS_PER_TOKEN,
    "MAX_USER_TOTAL_LIMIT": DEFAULT_MAX_USER_TOTAL_LIMIT,
    "TOKEN_DECIMALS": DEFAULT_TOKEN_DECIMALS,
    "NETWORK_FEE_RESERVE_LAMPORTS": DEFAULT_NETWORK_FEE_RESERVE_LAMPORTS,
    "CONFIRM_TIMEOUT_SECONDS": 60,
    "COMMITMENT": "confirmed",
    "LOG_LEVEL": "INFO",
}

VALID_COMMITMENTS = ("processed", "confirmed", "finalized")


@dataclass(frozen=True)
class IcoConfig:
    rpc_endpoint: str
    program_id: Pubkey
    mint: Pubkey
    private_key: Optional[str] = None
    lamports_per_token: int = DEFAULT_LAMPORTS_PER_TOKEN
    max_user_total_limit: int = DEFAULT_MAX_USER_TOTAL_LIMIT
    token_decimals: int = DEFAULT_TOKEN_DECIMALS
    network_fee_reserve_lamports: int = DEFAULT_NETWORK_FEE_RESERVE_LAMPORTS
    confirm_timeout_seconds: int = 60
    commitment: str = "confirmed"
    sale_admin: Optional[Pubkey] = None
    audit_log_file: Optional[str] = None
    log_level: str = "INFO"


def _parse_pubkey(var: str, raw: str) -> Pubkey:
    try:
        return Pubkey.from_string(raw.strip())
    except ValueError as e:
        raise ConfigError(f"{var} is not a valid public key: {raw!r}") from e


def load_config(env_file: Optional[str] = None) -> IcoConfig:
    """Load and validate the client configuration from the environment / .env."""
    load_dotenv(dotenv_path=env_file)

    required: Dict[str, str] = {}
    for var in REQUIRED_VARS:
        val = os.getenv(var)
        if not val:
            raise ConfigError(f"Missing required config var: {var}")
        required[var] = val

    optional: Dict[str, Any] = {}
    for var, default in OPTIONAL_DEFAULTS.items():
        raw = os.getenv(var)
        if raw is None or raw == "":
            optional[var] = default
            continue
        try:
            optional[var] = type(default)(raw)
        except ValueError:
            logger.warning(f"Config warning: invalid type for {var}, using default {default}")
            optional[var] = default

    for var in ("LAMPORTS_PER_TOKEN", "MAX_USER_TOTAL_LIMIT", "CONFIRM_TIMEOUT_SECONDS"):
        if optional[var] <= 0:
            logger.warning(f"Config warning: {var} must be positive, using default {OPTIONAL_DEFAULTS[var]}")
            optional[var] = OPTIONAL_DEFAULTS[var]
    for var in ("TOKEN_DECIMALS", "NETWORK_FEE_RESERVE_LAMPORTS"):
        if optional[var] < 0:
            logger.warning(f"Config warning: {var} must not be negative, using default {OPTIONAL_DEFAULTS[var]}")
            optional[var] = OPTIONAL_DEFAULTS[var]

    commitment = optional["COMMITMENT"].lower()
    if commitment not in VALID_COMMITMENTS:
        logger.warning(f"Config warning: unknown COMMITMENT {commitment!r}, using 'confirmed'")
        commitment = "confirmed"

    sale_admin_raw = os.getenv("SALE_ADMIN")
    config = IcoConfig(
        rpc_endpoint=required["SOLANA_NODE_RPC_ENDPOINT"],
        program_id=_parse_pubkey("ICO_PROGRAM_ID", required["ICO_PROGRAM_ID"]),
        mint=_parse_pubkey("ICO_MINT", required["ICO_MINT"]),
        private_key=os.getenv("SOLANA_PRIVATE_KEY") or None,
        lamports_per_token=optional["LAMPORTS_PER_TOKEN"],
        max_user_total_limit=optional["MAX_USER_TOTAL_LIMIT"],
        token_decimals=optional["TOKEN_DECIMALS"],
        network_fee_reserve_lamports=optional["NETWORK_FEE_RESERVE_LAMPORTS"],
        confirm_timeout_seconds=optional["CONFIRM_TIMEOUT_SECONDS"],
        commitment=commitment,
        sale_admin=_parse_pubkey("SALE_ADMIN", sale_admin_raw) if sale_admin_raw else None,
        audit_log_file=os.getenv("AUDIT_LOG_FILE") or None,
        log_level=optional["LOG_LEVEL"],
    )
    logger.info("Configuration loaded successfully.")
    return config
