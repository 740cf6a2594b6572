"""
Identity resolution: chat user to payout address.
"""

from domain.models.ledger import is_address
from repositories.interfaces import IWalletRepository
from services.interfaces import IIdentityResolver


class WalletIdentityResolver(IIdentityResolver):
    """
    Resolves payout addresses from the wallet registry.

    A user id that is itself an address (tips sent straight from a wallet)
    resolves to itself.
    """

    def __init__(self, wallet_repo: IWalletRepository):
        self.wallet_repo = wallet_repo

    def resolve_payout_address(self, space_id: str, user_id: str) -> str | None:
        address = self.wallet_repo.get_wallet(space_id, user_id)
        if address:
            return address
        if is_address(user_id):
            return user_id
        return None
