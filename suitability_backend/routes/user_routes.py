from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..database import MemStorage
from ..dependencies import get_current_user, get_store
from ..errors import parse_body
from ..models import AtrqResult, Goal, User
from ..schemas import AtrqResultUpdate, GoalUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/user", response_model=User)
async def get_user(user: User = Depends(get_current_user)):
    return user


@router.get("/goals", response_model=Optional[Goal])
async def get_goals(user: User = Depends(get_current_user), store: MemStorage = Depends(get_store)):
    goals = store.get_goals_by_user_id(user.id)
    return goals[0] if goals else None


@router.put("/goals", response_model=Goal)
async def update_goals(data: dict, user: User = Depends(get_current_user), store: MemStorage = Depends(get_store)):
    updates = parse_body(GoalUpdate, data, "Invalid goal data")
    goal = store.update_goal_for_user(user.id, updates.changes())
    if not goal:
        raise HTTPException(status_code=404, detail="Goal not found")
    return goal


@router.get("/atrq", response_model=Optional[AtrqResult])
async def get_atrq(user: User = Depends(get_current_user), store: MemStorage = Depends(get_store)):
    return store.get_atrq_result_by_user_id(user.id)


@router.put("/atrq", response_model=AtrqResult)
async def update_atrq(data: dict, user: User = Depends(get_current_user), store: MemStorage = Depends(get_store)):
    updates = parse_body(AtrqResultUpdate, data, "Invalid ATRQ data")
    result = store.update_atrq_result_for_user(user.id, updates.changes())
    if not result:
        raise HTTPException(status_code=404, detail="ATRQ result not found")
    logger.info(f"Updated ATRQ result for {user.username}")
    return result
