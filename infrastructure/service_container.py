"""
Service container for dependency injection and initialization.

Usage:
    container = ServiceContainer(ServiceConfig(db_path="wordle_pot.db"), messenger=messenger)
    container.initialize()
    container.expose_to_bot(bot)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import config
from database import Database
from infrastructure.rpc_transport import Web3AssetTransport
from repositories.game_repository import GameRepository
from repositories.ledger_repository import LedgerRepository
from repositories.wallet_repository import WalletRepository
from services.definition_service import DictionaryApiDefinitionLookup
from services.game_service import GameService
from services.identity_service import WalletIdentityResolver
from services.interfaces import IAssetTransport, IDefinitionLookup, IMessenger
from services.settlement_service import SettlementService
from services.word_service import WordService

logger = logging.getLogger("wordle_bot.infrastructure.container")


@dataclass
class RepositoryContainer:
    """Container for all repositories."""

    game: GameRepository | None = None
    ledger: LedgerRepository | None = None
    wallet: WalletRepository | None = None


@dataclass
class ServiceConfig:
    """Configuration for service initialization. Defaults come from config.py."""

    db_path: str = field(default_factory=lambda: config.DB_PATH)
    solution_words_path: str = field(default_factory=lambda: config.SOLUTION_WORDS_PATH)
    guess_words_path: str | None = field(default_factory=lambda: config.GUESS_WORDS_PATH)

    custody_address: str = field(default_factory=lambda: config.CUSTODY_ADDRESS)
    rpc_url: str = field(default_factory=lambda: config.RPC_URL)
    allow_token_tips: bool = field(default_factory=lambda: config.ALLOW_TOKEN_TIPS)
    operator_channel_id: int | None = field(default_factory=lambda: config.OPERATOR_CHANNEL_ID)

    leaderboard_limit: int = field(default_factory=lambda: config.LEADERBOARD_LIMIT)
    definition_lookup_enabled: bool = field(
        default_factory=lambda: config.DEFINITION_LOOKUP_ENABLED
    )
    recovery_sync_enabled: bool = field(default_factory=lambda: config.RECOVERY_SYNC_ENABLED)


class ServiceContainer:
    """
    Central container for all application services.

    Collaborators that live outside the process (chain transport, messenger,
    definition lookup) can be injected; otherwise the concrete HTTP
    implementations are built from the config.
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        messenger: IMessenger | None = None,
        transport: IAssetTransport | None = None,
        definitions: IDefinitionLookup | None = None,
    ):
        self.config = config or ServiceConfig()
        self._messenger = messenger
        self._transport = transport
        self._definitions = definitions
        self._initialized = False
        self._repos = RepositoryContainer()
        self._database: Database | None = None
        self._word_service: WordService | None = None
        self._settlement_service: SettlementService | None = None
        self._game_service: GameService | None = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """
        Initialize all services in dependency order. Idempotent.

        Raises:
            ValueError: If no messenger was provided
        """
        if self._initialized:
            logger.debug("ServiceContainer already initialized, skipping")
            return
        if self._messenger is None:
            raise ValueError("ServiceContainer needs a messenger before initialization.")

        logger.info("Initializing ServiceContainer...")
        self._init_database()
        self._init_repositories()
        self._init_services()
        self._initialized = True
        logger.info("ServiceContainer initialized")

    def _init_database(self) -> None:
        self._database = Database(self.config.db_path)

    def _init_repositories(self) -> None:
        db_path = self.config.db_path
        self._repos.game = GameRepository(db_path)
        self._repos.ledger = LedgerRepository(db_path)
        self._repos.wallet = WalletRepository(db_path)

    def _init_services(self) -> None:
        cfg = self.config
        self._word_service = WordService.from_files(cfg.solution_words_path, cfg.guess_words_path)

        if self._transport is None:
            self._transport = Web3AssetTransport(rpc_url=cfg.rpc_url)
        if self._definitions is None and cfg.definition_lookup_enabled:
            self._definitions = DictionaryApiDefinitionLookup()
        if not cfg.custody_address:
            logger.warning("CUSTODY_ADDRESS is not set; every tip will be ignored")

        self._settlement_service = SettlementService(
            game_repo=self._repos.game,
            ledger_repo=self._repos.ledger,
            word_service=self._word_service,
            transport=self._transport,
            identity=WalletIdentityResolver(self._repos.wallet),
            messenger=self._messenger,
            definitions=self._definitions,
            custody_address=cfg.custody_address,
            operator_channel_id=cfg.operator_channel_id,
            recovery_sync_enabled=cfg.recovery_sync_enabled,
        )
        self._game_service = GameService(
            game_repo=self._repos.game,
            ledger_repo=self._repos.ledger,
            wallet_repo=self._repos.wallet,
            word_service=self._word_service,
            settlement=self._settlement_service,
            custody_address=cfg.custody_address,
            allow_token_tips=cfg.allow_token_tips,
            leaderboard_limit=cfg.leaderboard_limit,
        )

    @property
    def game_repo(self) -> GameRepository:
        return self._repos.game

    @property
    def ledger_repo(self) -> LedgerRepository:
        return self._repos.ledger

    @property
    def wallet_repo(self) -> WalletRepository:
        return self._repos.wallet

    @property
    def word_service(self) -> WordService | None:
        return self._word_service

    @property
    def settlement_service(self) -> SettlementService | None:
        return self._settlement_service

    @property
    def game_service(self) -> GameService | None:
        return self._game_service

    def expose_to_bot(self, bot) -> None:
        """
        Attach services to the bot object.

        Cogs read their dependencies from bot.<name> in their setup().
        """
        bot.game_repo = self.game_repo
        bot.ledger_repo = self.ledger_repo
        bot.wallet_repo = self.wallet_repo
        bot.word_service = self.word_service
        bot.settlement_service = self.settlement_service
        bot.game_service = self.game_service
