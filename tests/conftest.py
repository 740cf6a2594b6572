"""
Pytest fixtures for tests.

Uses a session-scoped schema template: migrations run once and each test
copies the resulting database file instead of re-initializing.

Shared constants and in-memory collaborator fakes live here too. Import them
with `from tests.conftest import TEST_SPACE_ID, FakeTransport`.
"""

import shutil

import pytest

from database import Database
from domain.models.ledger import TransferInstruction
from repositories.game_repository import GameRepository
from repositories.ledger_repository import LedgerRepository
from repositories.wallet_repository import WalletRepository
from services.game_service import GameService, TipEvent
from services.identity_service import WalletIdentityResolver
from services.interfaces import (
    IAssetTransport,
    IDefinitionLookup,
    IMessenger,
    PartialTransferError,
)
from services.settlement_service import SettlementService
from services.word_service import WordService

# =============================================================================
# CENTRALIZED CONSTANTS
# =============================================================================

TEST_SPACE_ID = "12345"
"""Standard space (guild) id for single-space tests."""

TEST_SPACE_ID_SECONDARY = "67890"

TEST_CHANNEL_ID = "1000"
TEST_CHANNEL_ID_SECONDARY = "2000"

CUSTODY_ADDRESS = "0x" + "c" * 40
PLAYER_ADDRESS = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
OTHER_ADDRESS = "0x" + "1" * 40
TOKEN_ADDRESS = "0x" + "7" * 40

OPERATOR_CHANNEL = "999"

SOLUTIONS = ["crane", "sheep", "speed", "abcde", "ababa"]
GUESSES = ["edcba", "aabbb", "slate", "trace", "crate", "react"]


# =============================================================================
# FAKES
# =============================================================================


class FakeTransport(IAssetTransport):
    """In-memory custody: balances per token, records every transfer."""

    def __init__(self, balances=None):
        self.balances: dict[str, int] = dict(balances or {})
        self.failing_balance_tokens: set[str] = set()
        self.fail_transfer = False
        self.fail_confirmation = False
        # Submit this many instructions of a batch, then fail the rest
        self.fail_after: int | None = None
        self.transfers: list[tuple[str, list[TransferInstruction]]] = []
        self.confirmed: list[str] = []

    async def get_balance(self, token, holder):
        if token in self.failing_balance_tokens:
            raise ConnectionError(f"balance query for {token} failed")
        return self.balances.get(token, 0)

    async def transfer(self, holder, instructions):
        if self.fail_transfer:
            raise ConnectionError("transfer rejected")
        if self.fail_after is not None:
            submitted = list(instructions)[: self.fail_after]
            self.transfers.append((holder, submitted))
            sent = [(instruction, f"0xpart{i}") for i, instruction in enumerate(submitted, start=1)]
            raise PartialTransferError(sent, ConnectionError("nonce too low"))
        self.transfers.append((holder, list(instructions)))
        for instruction in instructions:
            self.balances[instruction.token] = self.balances.get(instruction.token, 0) - instruction.amount
        return f"0xtx{len(self.transfers)}"

    async def await_confirmation(self, tx_reference):
        if self.fail_confirmation:
            raise TimeoutError("not confirmed")
        self.confirmed.append(tx_reference)


class FakeMessenger(IMessenger):
    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    async def send_message(self, channel_id, text):
        self.messages.append((channel_id, text))

    def texts_for(self, channel_id):
        return [text for cid, text in self.messages if cid == channel_id]


class FakeDefinitions(IDefinitionLookup):
    def __init__(self, definitions=None):
        self.definitions = definitions or {}

    async def define(self, word):
        return self.definitions.get(word)


def make_tip(
    user_id="42",
    amount=1000,
    currency="NATIVE",
    sender=PLAYER_ADDRESS,
    receiver=CUSTODY_ADDRESS,
    space_id=TEST_SPACE_ID,
    channel_id=TEST_CHANNEL_ID,
) -> TipEvent:
    return TipEvent(
        space_id=space_id,
        channel_id=channel_id,
        user_id=user_id,
        sender_address=sender,
        receiver_address=receiver,
        currency=currency,
        amount=amount,
    )


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def _schema_template_path(tmp_path_factory):
    """Create a schema template database once per test session."""
    template_dir = tmp_path_factory.mktemp("schema_template")
    template_path = str(template_dir / "template.db")
    Database(template_path)
    yield template_path


@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path (no schema)."""
    yield str(tmp_path / "temp.db")


@pytest.fixture
def repo_db_path(_schema_template_path, tmp_path):
    """Create a temporary database with initialized schema for repository tests."""
    test_db_path = str(tmp_path / "test.db")
    shutil.copy2(_schema_template_path, test_db_path)
    yield test_db_path


@pytest.fixture
def game_repo(repo_db_path):
    return GameRepository(repo_db_path)


@pytest.fixture
def ledger_repo(repo_db_path):
    return LedgerRepository(repo_db_path)


@pytest.fixture
def wallet_repo(repo_db_path):
    return WalletRepository(repo_db_path)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def word_service():
    return WordService(SOLUTIONS, GUESSES)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def fake_messenger():
    return FakeMessenger()


@pytest.fixture
def settlement_service(game_repo, ledger_repo, wallet_repo, word_service, fake_transport, fake_messenger):
    return SettlementService(
        game_repo=game_repo,
        ledger_repo=ledger_repo,
        word_service=word_service,
        transport=fake_transport,
        identity=WalletIdentityResolver(wallet_repo),
        messenger=fake_messenger,
        definitions=FakeDefinitions({"crane": "(noun) a large wading bird"}),
        custody_address=CUSTODY_ADDRESS,
        operator_channel_id=OPERATOR_CHANNEL,
        recovery_sync_enabled=False,
    )


@pytest.fixture
def game_service(game_repo, ledger_repo, wallet_repo, word_service, settlement_service):
    return GameService(
        game_repo=game_repo,
        ledger_repo=ledger_repo,
        wallet_repo=wallet_repo,
        word_service=word_service,
        settlement=settlement_service,
        custody_address=CUSTODY_ADDRESS,
        allow_token_tips=False,
        leaderboard_limit=10,
    )
