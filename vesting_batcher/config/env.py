"""
Environment variable loading and validation for the vesting batcher.

- RPC_URL: JSON-RPC endpoint of the chain hosting the vesting contract
- PRIVATE_KEY: hex private key of the account that calls addBeneficiaries
- VESTING_CONTRACT_ADDRESS: deployed vesting contract (default below)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is vesting_batcher/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_CONTRACT_ADDRESS = "0x0045edcE84e8E85e1E4861f082e5F5A0a50A7317"
DEFAULT_RPC_URL = "http://127.0.0.1:8545"


def load_vesting_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    load_dotenv(_ENV_PATH, override=False)


def project_root() -> Path:
    return _ROOT


def get_rpc_url() -> str:
    """Resolve RPC URL from env. Order: RPC_URL > VESTING_RPC_URL > local node."""
    load_vesting_env()
    url = (os.getenv("RPC_URL") or os.getenv("VESTING_RPC_URL") or "").strip()
    return url or DEFAULT_RPC_URL


def get_private_key() -> str:
    """Return PRIVATE_KEY from env ('' when unset; only the submission workflow needs it)."""
    load_vesting_env()
    return (os.getenv("PRIVATE_KEY") or "").strip()


def get_contract_address() -> str:
    load_vesting_env()
    return (os.getenv("VESTING_CONTRACT_ADDRESS") or DEFAULT_CONTRACT_ADDRESS).strip()


def mask_rpc_url(url: str) -> str:
    """Hide API keys embedded in provider URLs before logging them."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    if "/v3/" in url:
        return url.split("/v3/")[0] + "/v3/***"
    return url
