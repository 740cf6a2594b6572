"""
EVM asset transport over web3.

Transfers are sent with eth_sendTransaction, so the node (or the signer
proxy in front of it) must manage the custody key.
"""

from __future__ import annotations

import asyncio
import logging

from web3 import Web3
from web3.exceptions import TimeExhausted

from config import (
    CONFIRMATION_POLL_SECONDS,
    CONFIRMATION_TIMEOUT_SECONDS,
    RPC_TIMEOUT_SECONDS,
    RPC_URL,
)
from domain.models.ledger import NATIVE_TOKEN, TransferInstruction
from services.interfaces import IAssetTransport, PartialTransferError

logger = logging.getLogger("wordle_bot.infrastructure.rpc")

TX_REFERENCE_SEPARATOR = ","

# Only the two ERC-20 calls the pot needs
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [{"name": "to", "type": "address"}, {"name": "value", "type": "uint256"}],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


class TransactionReverted(Exception):
    """Raised when a submitted transaction is mined with a failure status."""


class Web3AssetTransport(IAssetTransport):
    """
    Reads balances and sends payouts through a web3 HTTP provider.

    A payout batch is submitted one transaction per instruction, in order;
    the returned reference joins the transaction hashes with commas.
    """

    def __init__(
        self,
        rpc_url: str | None = None,
        timeout: float | None = None,
        poll_seconds: float | None = None,
        confirmation_timeout: float | None = None,
        web3: Web3 | None = None,
    ):
        self.rpc_url = rpc_url if rpc_url is not None else RPC_URL
        self.timeout = timeout if timeout is not None else RPC_TIMEOUT_SECONDS
        self.poll_seconds = poll_seconds if poll_seconds is not None else CONFIRMATION_POLL_SECONDS
        self.confirmation_timeout = (
            confirmation_timeout if confirmation_timeout is not None else CONFIRMATION_TIMEOUT_SECONDS
        )
        self.web3 = web3 or Web3(
            Web3.HTTPProvider(self.rpc_url, request_kwargs={"timeout": self.timeout})
        )

    def _token_contract(self, token: str):
        return self.web3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)

    def _get_balance(self, token: str, holder: str) -> int:
        holder = Web3.to_checksum_address(holder)
        if token == NATIVE_TOKEN:
            return int(self.web3.eth.get_balance(holder))
        return int(self._token_contract(token).functions.balanceOf(holder).call())

    async def get_balance(self, token: str, holder: str) -> int:
        return await asyncio.to_thread(self._get_balance, token, holder)

    def _send_one(self, holder: str, instruction: TransferInstruction) -> str:
        to = Web3.to_checksum_address(instruction.to)
        if instruction.token == NATIVE_TOKEN:
            tx_hash = self.web3.eth.send_transaction(
                {"from": holder, "to": to, "value": instruction.amount}
            )
        else:
            tx_hash = (
                self._token_contract(instruction.token)
                .functions.transfer(to, instruction.amount)
                .transact({"from": holder})
            )
        return Web3.to_hex(tx_hash)

    def _send_batch(self, holder: str, instructions: list[TransferInstruction]) -> str:
        if not instructions:
            raise ValueError("Cannot submit an empty transfer batch.")
        holder = Web3.to_checksum_address(holder)
        sent: list[tuple[TransferInstruction, str]] = []
        for instruction in instructions:
            try:
                sent.append((instruction, self._send_one(holder, instruction)))
            except Exception as exc:
                if not sent:
                    raise
                logger.error(
                    f"Transfer batch from {holder} failed after {len(sent)} submission(s): {exc}"
                )
                raise PartialTransferError(sent, exc) from exc
        hashes = [tx_hash for _, tx_hash in sent]
        logger.info(f"Submitted {len(hashes)} transfer(s) from {holder}: {hashes}")
        return TX_REFERENCE_SEPARATOR.join(hashes)

    async def transfer(self, holder: str, instructions: list[TransferInstruction]) -> str:
        return await asyncio.to_thread(self._send_batch, holder, list(instructions))

    def _wait(self, tx_hash: str) -> None:
        try:
            receipt = self.web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.confirmation_timeout, poll_latency=self.poll_seconds
            )
        except TimeExhausted as exc:
            raise TimeoutError(
                f"Transaction {tx_hash} not confirmed after {self.confirmation_timeout}s"
            ) from exc
        if receipt["status"] != 1:
            raise TransactionReverted(f"Transaction {tx_hash} reverted")

    async def await_confirmation(self, tx_reference: str) -> None:
        """
        Wait until every transaction in the reference is mined.

        Raises:
            TransactionReverted: If a transaction reverted
            TimeoutError: If a receipt is still missing after the confirmation timeout
        """
        for tx_hash in (h for h in tx_reference.split(TX_REFERENCE_SEPARATOR) if h):
            await asyncio.to_thread(self._wait, tx_hash)
