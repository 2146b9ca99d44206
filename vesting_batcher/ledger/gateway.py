"""
Ledger gateway: the only code that talks to the chain.

- LedgerGateway is the protocol the pipeline depends on (state read, height read,
  submit, await inclusion). Tests drive the pipeline with an in-memory fake.
- Web3LedgerGateway implements it over JSON-RPC with web3.py's async client and the
  two vesting-contract functions we need (addBeneficiaries, beneficiaries).
- No retries here; callers wrap calls with run_with_retry() or their own loop.
Config: RPC_URL, PRIVATE_KEY, VESTING_CONTRACT_ADDRESS.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from eth_utils import from_wei, to_checksum_address
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted

from vesting_batcher.config.env import get_contract_address, get_private_key, get_rpc_url, mask_rpc_url
from vesting_batcher.core.exceptions import GatewayConfigError
from vesting_batcher.utils.wallet_utils import is_valid_wallet
from vesting_batcher.vesting_logging import get_logger

logger = get_logger(__name__)

_SCHEDULE_COMPONENTS = [
    {"name": "beneficiary", "type": "address"},
    {"name": "totalAmount", "type": "uint256"},
    {"name": "startBlock", "type": "uint64"},
    {"name": "durationInBlocks", "type": "uint64"},
    {"name": "cliffBlock", "type": "uint64"},
]

# Vesting contract ABI (just the functions we need)
VESTING_CONTRACT_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "addBeneficiaries",
        "stateMutability": "nonpayable",
        "inputs": [
            {
                "name": "schedules",
                "type": "tuple[]",
                "components": _SCHEDULE_COMPONENTS,
            }
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "beneficiaries",
        "stateMutability": "view",
        "inputs": [{"name": "", "type": "address"}],
        "outputs": [
            {"name": "totalAmount", "type": "uint256"},
            {"name": "releasedAmount", "type": "uint256"},
            {"name": "startBlock", "type": "uint64"},
            {"name": "durationInBlocks", "type": "uint64"},
            {"name": "cliffBlock", "type": "uint64"},
        ],
    },
]


@dataclass(frozen=True)
class ScheduleState:
    """On-chain vesting schedule as returned by beneficiaries(address)."""

    total_amount: int
    released_amount: int
    start_block: int
    duration_in_blocks: int
    cliff_block: int

    @property
    def exists(self) -> bool:
        return self.total_amount > 0

    @property
    def end_block(self) -> int:
        return self.start_block + self.duration_in_blocks

    @classmethod
    def empty(cls) -> "ScheduleState":
        return cls(0, 0, 0, 0, 0)


@dataclass(frozen=True)
class ScheduleEntry:
    """One element of the addBeneficiaries(schedules) argument."""

    beneficiary: str
    total_amount: int
    start_block: int
    duration_in_blocks: int
    cliff_block: int

    def as_abi_tuple(self) -> tuple[str, int, int, int, int]:
        return (
            to_checksum_address(self.beneficiary),
            self.total_amount,
            self.start_block,
            self.duration_in_blocks,
            self.cliff_block,
        )


@dataclass(frozen=True)
class InclusionOutcome:
    """Result of waiting for a submitted transaction."""

    tx_hash: str
    block_number: int | None
    succeeded: bool


class LedgerGateway(Protocol):
    async def current_height(self) -> int: ...

    async def read_state(self, address: str) -> ScheduleState: ...

    async def submit(self, schedules: Sequence[ScheduleEntry]) -> str: ...

    async def await_inclusion(self, tx_hash: str, timeout: float) -> InclusionOutcome: ...


def format_token_amount(amount: int) -> str:
    """Smallest-unit integer -> whole-token decimal string (18 decimals)."""
    value = from_wei(int(amount), "ether")
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


class Web3LedgerGateway:
    """
    JSON-RPC gateway for the vesting contract. Read-only when no private key is
    configured (submit() then raises GatewayConfigError).
    """

    def __init__(
        self,
        rpc_url: str | None = None,
        contract_address: str | None = None,
        private_key: str | None = None,
        *,
        request_timeout_sec: float = 30.0,
    ) -> None:
        self._rpc_url = rpc_url or get_rpc_url()
        address = contract_address or get_contract_address()
        if not is_valid_wallet(address):
            raise GatewayConfigError(f"Invalid vesting contract address: {address}")
        self._w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(self._rpc_url, request_kwargs={"timeout": request_timeout_sec})
        )
        self._contract = self._w3.eth.contract(address=to_checksum_address(address), abi=VESTING_CONTRACT_ABI)
        key = private_key if private_key is not None else get_private_key()
        self._account = self._w3.eth.account.from_key(key) if key else None
        logger.info(
            "ledger_gateway_ready",
            rpc_url=mask_rpc_url(self._rpc_url),
            contract=address,
            signer=self._account.address if self._account else None,
        )

    async def current_height(self) -> int:
        return int(await self._w3.eth.block_number)

    async def read_state(self, address: str) -> ScheduleState:
        total, released, start, duration, cliff = await self._contract.functions.beneficiaries(
            to_checksum_address(address)
        ).call()
        return ScheduleState(
            total_amount=int(total),
            released_amount=int(released),
            start_block=int(start),
            duration_in_blocks=int(duration),
            cliff_block=int(cliff),
        )

    async def submit(self, schedules: Sequence[ScheduleEntry]) -> str:
        if self._account is None:
            raise GatewayConfigError("PRIVATE_KEY must be set to submit transactions")
        sender = self._account.address
        nonce = await self._w3.eth.get_transaction_count(sender, "pending")
        tx = await self._contract.functions.addBeneficiaries(
            [entry.as_abi_tuple() for entry in schedules]
        ).build_transaction({"from": sender, "nonce": nonce})
        signed = self._account.sign_transaction(tx)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        return self._w3.to_hex(tx_hash)

    async def await_inclusion(self, tx_hash: str, timeout: float) -> InclusionOutcome:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as e:
            raise TimeoutError(f"Transaction {tx_hash} not included within {timeout}s") from e
        return InclusionOutcome(
            tx_hash=tx_hash,
            block_number=receipt.get("blockNumber"),
            succeeded=receipt.get("status", 1) == 1,
        )
