"""
DEV-ONLY demo endpoints: seed a pool with placeholder teams and entries, then
simulate the bracket a round at a time.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlmodel import Session

from bracket_pool.database import get_session
from bracket_pool.services.demo_service import seed_demo_pool, simulate_next_round
from bracket_pool.services.errors import PoolEngineError
from bracket_pool.utils.http_errors import to_http_exception

router = APIRouter()


@router.post("/pools/{pool_id}/demo/seed", response_model=Dict[str, int])
def seed_demo_endpoint(pool_id: int, session: Session = Depends(get_session)) -> Dict[str, int]:
    try:
        return seed_demo_pool(session, pool_id)
    except PoolEngineError as e:
        raise to_http_exception(e)


@router.post("/pools/{pool_id}/demo/simulate-round")
def simulate_round_endpoint(pool_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    """Finalize every playable game in the earliest unfinished round with random scores"""
    try:
        return simulate_next_round(session, pool_id)
    except PoolEngineError as e:
        raise to_http_exception(e)
