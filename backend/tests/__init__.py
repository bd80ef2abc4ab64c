# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from bracket_pool.models.entry import Entry  # noqa: F401
from bracket_pool.models.game import Game  # noqa: F401
from bracket_pool.models.pool import Pool  # noqa: F401
from bracket_pool.models.pool_team import PoolTeam  # noqa: F401
