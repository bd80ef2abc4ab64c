"""
Pool engine exceptions.

Three families, each mapped to one HTTP status by the routes:
- ValidationError: the input itself is wrong (counts, scores, spreads, payouts)
- StateError: the input is fine but the pool/game is in the wrong state
- ConsistencyError: the stored bracket contradicts BracketGraph (mis-seeded)
"""


class PoolEngineError(Exception):
    """Base exception for pool engine errors"""

    code = "POOL_ENGINE_ERROR"


class NotFoundError(PoolEngineError):
    code = "NOT_FOUND"


class ValidationError(PoolEngineError):
    code = "VALIDATION_ERROR"


class CountMismatchError(ValidationError):
    code = "COUNT_MISMATCH"


class RegionSeedError(ValidationError):
    code = "REGION_SEED_INVALID"


class ScoreValidationError(ValidationError):
    code = "SCORE_INVALID"


class SpreadValidationError(ValidationError):
    code = "SPREAD_INVALID"


class PayoutConfigError(ValidationError):
    code = "PAYOUT_CONFIG_INVALID"


class StateError(PoolEngineError):
    code = "STATE_ERROR"


class AlreadyDrawnError(StateError):
    code = "ALREADY_DRAWN"


class AlreadyEliminatedError(StateError):
    code = "ALREADY_ELIMINATED"


class SpreadLockedError(StateError):
    code = "SPREAD_LOCKED"


class TiedGameError(StateError):
    code = "TIED_GAME"


class GameNotReadyError(StateError):
    code = "GAME_NOT_READY"


class GameAlreadyFinalError(StateError):
    code = "GAME_ALREADY_FINAL"


class PoolLockedError(StateError):
    code = "POOL_LOCKED"


class SlotConflictError(StateError):
    code = "SLOT_CONFLICT"


class ConsistencyError(PoolEngineError):
    code = "BRACKET_INCONSISTENT"
