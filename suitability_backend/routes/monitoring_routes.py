from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..database import MemStorage
from ..dependencies import get_current_user, get_store
from ..errors import parse_body
from ..models import MonitoringField, SuitabilityRule, User
from ..schemas import (
    MonitoringFieldCreate,
    MonitoringFieldUpdate,
    RuleDescription,
    SuitabilityRuleCreate,
    SuitabilityRuleUpdate,
)
from ..services.rules import describe_actions, describe_conditions, describe_rule

logger = logging.getLogger(__name__)

router = APIRouter()


# Suitability rules

@router.get("/suitability-rules", response_model=List[SuitabilityRule])
async def get_suitability_rules(user: User = Depends(get_current_user), store: MemStorage = Depends(get_store)):
    return store.get_suitability_rules_by_user_id(user.id)


@router.post("/suitability-rules", response_model=SuitabilityRule)
async def create_suitability_rule(data: dict, user: User = Depends(get_current_user), store: MemStorage = Depends(get_store)):
    rule_data = parse_body(SuitabilityRuleCreate, data, "Invalid rule data").model_dump()
    rule_data["userId"] = rule_data["userId"] or user.id

    rule = store.create_suitability_rule(rule_data)
    logger.info(f"Created suitability rule {rule.id} ({rule.name})")
    return rule


@router.put("/suitability-rules/{rule_id}", response_model=SuitabilityRule)
async def update_suitability_rule(rule_id: str, data: dict, store: MemStorage = Depends(get_store)):
    updates = parse_body(SuitabilityRuleUpdate, data, "Failed to update rule")
    rule = store.update_suitability_rule(rule_id, updates.changes())
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


@router.delete("/suitability-rules/{rule_id}")
async def delete_suitability_rule(rule_id: str, store: MemStorage = Depends(get_store)):
    if not store.delete_suitability_rule(rule_id):
        raise HTTPException(status_code=404, detail="Rule not found")
    logger.info(f"Deleted suitability rule {rule_id}")
    return {"message": "Rule deleted"}


@router.get("/suitability-rules/{rule_id}/description", response_model=RuleDescription)
async def describe_suitability_rule(rule_id: str, store: MemStorage = Depends(get_store)):
    rule = store.get_suitability_rule(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    return RuleDescription(
        ruleId=rule.id,
        conditions=describe_conditions(rule.conditions),
        actions=describe_actions(rule.actions),
        text=describe_rule(rule.conditions, rule.actions),
    )


# Monitoring fields

@router.get("/monitoring-fields", response_model=List[MonitoringField])
async def get_monitoring_fields(user: User = Depends(get_current_user), store: MemStorage = Depends(get_store)):
    return store.get_monitoring_fields_by_user_id(user.id)


@router.post("/monitoring-fields", response_model=MonitoringField)
async def create_monitoring_field(data: dict, user: User = Depends(get_current_user), store: MemStorage = Depends(get_store)):
    field_data = parse_body(MonitoringFieldCreate, data, "Invalid field data").model_dump()
    field_data["userId"] = field_data["userId"] or user.id

    field = store.create_monitoring_field(field_data)
    logger.info(f"Created monitoring field {field.id} ({field.fieldName})")
    return field


@router.put("/monitoring-fields/{field_id}", response_model=MonitoringField)
async def update_monitoring_field(field_id: str, data: dict, store: MemStorage = Depends(get_store)):
    updates = parse_body(MonitoringFieldUpdate, data, "Failed to update field")
    field = store.update_monitoring_field(field_id, updates.changes())
    if not field:
        raise HTTPException(status_code=404, detail="Field not found")
    return field


@router.delete("/monitoring-fields/{field_id}")
async def delete_monitoring_field(field_id: str, store: MemStorage = Depends(get_store)):
    if not store.delete_monitoring_field(field_id):
        raise HTTPException(status_code=404, detail="Field not found")
    logger.info(f"Deleted monitoring field {field_id}")
    return {"message": "Field deleted"}
