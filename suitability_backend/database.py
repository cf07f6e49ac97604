from datetime import datetime, timedelta
from typing import Any, Dict, Generic, List, Mapping, Optional, Type, TypeVar
import logging

from bson import ObjectId
from pydantic import BaseModel

from .models import (
    AtrqResult,
    BreachStatus,
    Goal,
    MonitoringField,
    Portfolio,
    PortfolioBreach,
    SuitabilityRule,
    User,
    utcnow,
)
from .services.breaches import resolution_time, set_status

logger = logging.getLogger(__name__)

Record = TypeVar("Record", bound=BaseModel)

# Fields the store assigns itself; client updates never overwrite them
READ_ONLY_FIELDS = ("id", "lastUpdated", "detectedAt", "resolvedAt")


class DuplicateUsernameError(ValueError):
    pass


def new_id() -> str:
    return str(ObjectId())


class Collection(Generic[Record]):
    """Insertion-ordered, id-keyed records of one entity type.

    Reads hand out copies, so a caller can only change stored state through
    ``insert``/``replace``/``delete``.
    """

    def __init__(self, name: str, model: Type[Record]):
        self.name = name
        self.model = model
        self._records: Dict[str, Record] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._records

    def insert(self, record: Record) -> Record:
        self._records[record.id] = record
        logger.debug(f"{self.name}: inserted {record.id}")
        return record.model_copy(deep=True)

    def replace(self, record: Record) -> Record:
        return self.insert(record)

    def get(self, record_id: str) -> Optional[Record]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    def find(self, **criteria: Any) -> List[Record]:
        return [
            record.model_copy(deep=True)
            for record in self._records.values()
            if all(getattr(record, key) == value for key, value in criteria.items())
        ]

    def find_one(self, **criteria: Any) -> Optional[Record]:
        for record in self._records.values():
            if all(getattr(record, key) == value for key, value in criteria.items()):
                return record.model_copy(deep=True)
        return None

    def all(self) -> List[Record]:
        return [record.model_copy(deep=True) for record in self._records.values()]

    def delete(self, record_id: str) -> bool:
        removed = self._records.pop(record_id, None) is not None
        if removed:
            logger.debug(f"{self.name}: deleted {record_id}")
        return removed


def _writable(changes: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in changes.items() if key not in READ_ONLY_FIELDS}


class MemStorage:
    """In-process store for every dashboard entity.

    Lookups signal absence with ``None`` (reads, updates) or ``False`` (deletes)
    rather than raising.
    """

    def __init__(self):
        self.users: Collection[User] = Collection("users", User)
        self.portfolios: Collection[Portfolio] = Collection("portfolios", Portfolio)
        self.goals: Collection[Goal] = Collection("goals", Goal)
        self.atrq_results: Collection[AtrqResult] = Collection("atrq_results", AtrqResult)
        self.suitability_rules: Collection[SuitabilityRule] = Collection("suitability_rules", SuitabilityRule)
        self.monitoring_fields: Collection[MonitoringField] = Collection("monitoring_fields", MonitoringField)
        self.portfolio_breaches: Collection[PortfolioBreach] = Collection("portfolio_breaches", PortfolioBreach)

    def _update(self, collection: Collection, record_id: str, changes: Mapping[str, Any], touch: bool = False):
        record = collection.get(record_id)
        if record is None:
            return None
        update = _writable(changes)
        if touch:
            update["lastUpdated"] = utcnow()
        # Validate the merged record so a bad partial update cannot corrupt the store
        merged = collection.model.model_validate({**record.model_dump(), **update})
        return collection.replace(merged)

    # Users

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.users.find_one(username=username)

    def get_first_user(self) -> Optional[User]:
        users = self.users.all()
        return users[0] if users else None

    def create_user(self, data: Mapping[str, Any]) -> User:
        if self.get_user_by_username(data["username"]) is not None:
            raise DuplicateUsernameError(f"Username {data['username']!r} already exists")
        return self.users.insert(User(**_writable(data), id=new_id()))

    def update_user(self, user_id: str, changes: Mapping[str, Any]) -> Optional[User]:
        username = changes.get("username")
        if username is not None:
            holder = self.get_user_by_username(username)
            if holder is not None and holder.id != user_id:
                raise DuplicateUsernameError(f"Username {username!r} already exists")
        return self._update(self.users, user_id, changes)

    def delete_user(self, user_id: str) -> bool:
        # Records owned by the user are kept
        return self.users.delete(user_id)

    # Portfolios

    def get_portfolio(self, portfolio_id: str) -> Optional[Portfolio]:
        return self.portfolios.get(portfolio_id)

    def get_portfolios_by_user_id(self, user_id: str) -> List[Portfolio]:
        return self.portfolios.find(userId=user_id)

    def create_portfolio(self, data: Mapping[str, Any]) -> Portfolio:
        portfolio = Portfolio(**_writable(data), id=new_id(), lastUpdated=utcnow())
        return self.portfolios.insert(portfolio)

    def update_portfolio(self, portfolio_id: str, changes: Mapping[str, Any]) -> Optional[Portfolio]:
        return self._update(self.portfolios, portfolio_id, changes, touch=True)

    def delete_portfolio(self, portfolio_id: str) -> bool:
        # Breaches, rules and fields that point at the portfolio are kept
        return self.portfolios.delete(portfolio_id)

    # Goals

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self.goals.get(goal_id)

    def get_goals_by_user_id(self, user_id: str) -> List[Goal]:
        return self.goals.find(userId=user_id)

    def create_goal(self, data: Mapping[str, Any]) -> Goal:
        return self.goals.insert(Goal(**_writable(data), id=new_id()))

    def update_goal(self, goal_id: str, changes: Mapping[str, Any]) -> Optional[Goal]:
        return self._update(self.goals, goal_id, changes)

    def update_goal_for_user(self, user_id: str, changes: Mapping[str, Any]) -> Optional[Goal]:
        goal = self.goals.find_one(userId=user_id)
        if goal is None:
            return None
        return self.update_goal(goal.id, changes)

    def delete_goal(self, goal_id: str) -> bool:
        return self.goals.delete(goal_id)

    # ATRQ results

    def get_atrq_result_by_user_id(self, user_id: str) -> Optional[AtrqResult]:
        return self.atrq_results.find_one(userId=user_id)

    def get_atrq_result(self, result_id: str) -> Optional[AtrqResult]:
        return self.atrq_results.get(result_id)

    def create_atrq_result(self, data: Mapping[str, Any]) -> AtrqResult:
        result = AtrqResult(**_writable(data), id=new_id(), lastUpdated=utcnow())
        return self.atrq_results.insert(result)

    def update_atrq_result(self, result_id: str, changes: Mapping[str, Any]) -> Optional[AtrqResult]:
        return self._update(self.atrq_results, result_id, changes, touch=True)

    def update_atrq_result_for_user(self, user_id: str, changes: Mapping[str, Any]) -> Optional[AtrqResult]:
        result = self.atrq_results.find_one(userId=user_id)
        if result is None:
            return None
        return self.update_atrq_result(result.id, changes)

    def delete_atrq_result(self, result_id: str) -> bool:
        return self.atrq_results.delete(result_id)

    # Suitability rules

    def get_suitability_rule(self, rule_id: str) -> Optional[SuitabilityRule]:
        return self.suitability_rules.get(rule_id)

    def get_suitability_rules_by_user_id(self, user_id: str) -> List[SuitabilityRule]:
        return self.suitability_rules.find(userId=user_id)

    def create_suitability_rule(self, data: Mapping[str, Any]) -> SuitabilityRule:
        fields = _writable(data)
        if fields.get("isActive") is None:
            fields["isActive"] = True
        return self.suitability_rules.insert(SuitabilityRule(**fields, id=new_id()))

    def update_suitability_rule(self, rule_id: str, changes: Mapping[str, Any]) -> Optional[SuitabilityRule]:
        return self._update(self.suitability_rules, rule_id, changes)

    def delete_suitability_rule(self, rule_id: str) -> bool:
        return self.suitability_rules.delete(rule_id)

    # Monitoring fields

    def get_monitoring_field(self, field_id: str) -> Optional[MonitoringField]:
        return self.monitoring_fields.get(field_id)

    def get_monitoring_fields_by_user_id(self, user_id: str) -> List[MonitoringField]:
        return self.monitoring_fields.find(userId=user_id)

    def create_monitoring_field(self, data: Mapping[str, Any]) -> MonitoringField:
        fields = _writable(data)
        if fields.get("isEnabled") is None:
            fields["isEnabled"] = True
        fields.setdefault("threshold", None)
        return self.monitoring_fields.insert(MonitoringField(**fields, id=new_id()))

    def update_monitoring_field(self, field_id: str, changes: Mapping[str, Any]) -> Optional[MonitoringField]:
        return self._update(self.monitoring_fields, field_id, changes)

    def delete_monitoring_field(self, field_id: str) -> bool:
        return self.monitoring_fields.delete(field_id)

    # Portfolio breaches

    def get_portfolio_breach(self, breach_id: str) -> Optional[PortfolioBreach]:
        return self.portfolio_breaches.get(breach_id)

    def get_portfolio_breaches_by_portfolio_id(self, portfolio_id: str) -> List[PortfolioBreach]:
        return self.portfolio_breaches.find(portfolioId=portfolio_id)

    def get_portfolio_breaches_by_user_id(self, user_id: str) -> List[PortfolioBreach]:
        """Breaches carry no userId: resolve the user's portfolios first, then
        keep the breaches raised against one of them."""
        portfolio_ids = {portfolio.id for portfolio in self.get_portfolios_by_user_id(user_id)}
        return [
            breach for breach in self.portfolio_breaches.all()
            if breach.portfolioId in portfolio_ids
        ]

    def create_portfolio_breach(self, data: Mapping[str, Any]) -> PortfolioBreach:
        fields = _writable(data)
        status = fields.pop("status", None) or BreachStatus.PENDING
        now = utcnow()
        breach = PortfolioBreach(
            **fields,
            id=new_id(),
            status=status,
            detectedAt=now,
            resolvedAt=resolution_time(status, None, now),
        )
        return self.portfolio_breaches.insert(breach)

    def update_portfolio_breach(self, breach_id: str, changes: Mapping[str, Any]) -> Optional[PortfolioBreach]:
        breach = self.portfolio_breaches.get(breach_id)
        if breach is None:
            return None
        update = _writable(changes)
        new_status = update.pop("status", None)
        merged = PortfolioBreach.model_validate({**breach.model_dump(), **update})
        if new_status is not None:
            merged = set_status(merged, new_status)
        return self.portfolio_breaches.replace(merged)

    def set_breach_status(self, breach_id: str, new_status: str) -> Optional[PortfolioBreach]:
        return self.update_portfolio_breach(breach_id, {"status": new_status})

    def delete_portfolio_breach(self, breach_id: str) -> bool:
        return self.portfolio_breaches.delete(breach_id)


def seed_sample_data(store: MemStorage, now: Optional[datetime] = None) -> User:
    """Load the demo advisor, whose portfolios, fields, rules and breaches the
    dashboard renders on first start."""
    now = now or utcnow()

    user = store.users.insert(User(id=new_id(), username="john.smith", password="password", name="John Smith"))

    store.goals.insert(Goal(
        id=new_id(),
        userId=user.id,
        totalAssets=2450000.00,
        targetProgress=87.3,
        monthlyIncome=18750.00,
        riskScore=6.8,
        assetsChange=12.5,
        incomeChange=3.2,
    ))

    store.atrq_results.insert(AtrqResult(
        id=new_id(),
        userId=user.id,
        overallScore=6.8,
        riskProfile="Moderate",
        timeHorizon=8.2,
        financialCapacity=7.1,
        lossTolerance=5.9,
        riskExperience=6.3,
        lastUpdated=now,
    ))

    portfolios = [
        store.portfolios.insert(Portfolio(
            id=new_id(),
            userId=user.id,
            name=name,
            type=kind,
            value=value,
            performance=performance,
            riskLevel=risk_level,
            lastUpdated=now - timedelta(hours=hours_ago),
        ))
        for name, kind, value, performance, risk_level, hours_ago in [
            ("Conservative Growth Fund", "Mutual Fund", 450200.00, 8.7, "Medium", 2),
            ("Aggressive Growth Portfolio", "ETF Portfolio", 1250800.00, 15.2, "High", 1),
            ("Balanced Income Fund", "Bond Fund", 750500.00, 4.1, "Low", 3),
        ]
    ]

    fields = [
        store.monitoring_fields.insert(MonitoringField(
            id=new_id(),
            userId=user.id,
            fieldName=field_name,
            isEnabled=enabled,
            threshold=threshold,
            alertLevel=alert_level,
        ))
        for field_name, enabled, threshold, alert_level in [
            ("Portfolio Allocation Drift", True, 5.0, "Warning"),
            ("Risk Profile Mismatch", True, 1.5, "Critical"),
            ("Concentration Risk", False, 20.0, "Warning"),
        ]
    ]

    store.suitability_rules.insert(SuitabilityRule(
        id=new_id(),
        userId=user.id,
        name="Rule #1",
        isActive=True,
        conditions={
            "Portfolio Allocation Drift": {"operator": ">", "value": 5},
            "Risk Score Mismatch": {"operator": ">", "value": 1.5},
        },
        actions={"alertLevel": "Warning", "message": "Generate Warning Alert"},
    ))
    store.suitability_rules.insert(SuitabilityRule(
        id=new_id(),
        userId=user.id,
        name="Rule #2",
        isActive=False,
        conditions={"Concentration Risk": {"operator": ">", "value": 20}},
        actions={"alertLevel": "Critical", "message": "Generate Critical Alert"},
    ))

    for portfolio, field, condition, value, status, detected_days, resolved_days in [
        (portfolios[0], fields[0], "Portfolio Allocation Drift > 5.0%", 7.2, BreachStatus.PENDING, 2, None),
        (portfolios[1], fields[1], "Risk Score Mismatch > 1.5", 2.1, BreachStatus.ACCEPT_AND_CHANGE, 5, 3),
        (portfolios[2], fields[2], "Concentration Risk > 20.0%", 25.8, BreachStatus.REJECT, 7, 4),
    ]:
        store.portfolio_breaches.insert(PortfolioBreach(
            id=new_id(),
            portfolioId=portfolio.id,
            monitoringFieldId=field.id,
            breachCondition=condition,
            breachValue=value,
            status=status,
            detectedAt=now - timedelta(days=detected_days),
            resolvedAt=now - timedelta(days=resolved_days) if resolved_days is not None else None,
        ))

    logger.info(f"Seeded sample data for {user.username}")
    return user
