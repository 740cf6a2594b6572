"""
Standard error codes for the service layer.

These error codes allow command handlers to programmatically handle
specific error conditions without parsing error message text.

Usage:
    from services.error_codes import NOT_ELIGIBLE
    from services.result import Result

    if not ledger_repo.is_eligible(game.id, user_id):
        return Result.fail("Tip the pot to play", code=NOT_ELIGIBLE)
"""

# General errors
NOT_FOUND = "not_found"
VALIDATION_ERROR = "validation_error"
STATE_ERROR = "state_error"
PERMISSION_DENIED = "permission_denied"

# Guess errors
INVALID_WORD = "invalid_word"
NOT_ELIGIBLE = "not_eligible"
GAME_NOT_ACTIVE = "game_not_active"
RACE_LOST = "race_lost"

# Tip errors
TIP_IGNORED = "tip_ignored"
UNSUPPORTED_ASSET = "unsupported_asset"
INVALID_ADDRESS = "invalid_address"

# Settlement errors
SETTLEMENT_FAILED = "settlement_failed"
NOTHING_TO_PAY = "nothing_to_pay"
WINNER_UNRESOLVABLE = "winner_unresolvable"
TRANSFER_FAILED = "transfer_failed"

# Collaborator errors
EXTERNAL_API_ERROR = "external_api_error"
