"""
Collaborator interfaces (ABCs).

The game engine talks to the chain, the chat platform and the dictionary only
through these contracts, so tests can substitute in-memory fakes.
"""

from abc import ABC, abstractmethod

from domain.models.ledger import TransferInstruction


class PartialTransferError(Exception):
    """
    Raised by transfer() when part of a batch was submitted before a failure.

    `sent` holds (instruction, tx_hash) pairs for every submitted transfer;
    those funds may already be on their way.
    """

    def __init__(self, sent: list[tuple[TransferInstruction, str]], cause: Exception):
        self.sent = list(sent)
        self.cause = cause
        hashes = ", ".join(tx_hash for _, tx_hash in self.sent)
        super().__init__(f"{len(self.sent)} transfer(s) submitted ({hashes}) before failure: {cause}")

    @property
    def tx_hashes(self) -> list[str]:
        return [tx_hash for _, tx_hash in self.sent]


class IAssetTransport(ABC):
    """Moves and inspects assets held at an address."""

    @abstractmethod
    async def get_balance(self, token: str, holder: str) -> int:
        """Return the on-chain balance of `token` held by `holder`, in minor units."""
        ...

    @abstractmethod
    async def transfer(self, holder: str, instructions: list[TransferInstruction]) -> str:
        """
        Submit every instruction from `holder` as one batch.

        Returns:
            An opaque transaction reference for await_confirmation

        Raises:
            PartialTransferError: If some instructions were submitted before a failure
        """
        ...

    @abstractmethod
    async def await_confirmation(self, tx_reference: str) -> None:
        """Block until the batch is confirmed. Raises on revert or timeout."""
        ...


class IIdentityResolver(ABC):
    @abstractmethod
    def resolve_payout_address(self, space_id: str, user_id: str) -> str | None:
        """Return the address a user's winnings go to, or None if unknown."""
        ...


class IMessenger(ABC):
    @abstractmethod
    async def send_message(self, channel_id: str, text: str) -> None: ...


class IDefinitionLookup(ABC):
    @abstractmethod
    async def define(self, word: str) -> str | None:
        """Return a short definition, or None when unavailable."""
        ...
