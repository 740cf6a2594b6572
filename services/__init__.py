"""
Application services layer.

Services orchestrate business operations using repositories and domain services.
"""

from services.game_service import GameService, TipEvent
from services.interfaces import (
    IAssetTransport,
    IDefinitionLookup,
    IIdentityResolver,
    IMessenger,
)
from services.permissions import has_admin_permission

# Result type for consistent error handling
from services.result import Result
from services.settlement_service import RolloverResult, SettlementService
from services.word_service import WordService

__all__ = [
    # Concrete services
    "GameService",
    "SettlementService",
    "WordService",
    "TipEvent",
    "RolloverResult",
    # Collaborator interfaces
    "IAssetTransport",
    "IDefinitionLookup",
    "IIdentityResolver",
    "IMessenger",
    # Utilities
    "Result",
    "has_admin_permission",
]
