from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BreachStatus:
    PENDING = "Pending"
    ACCEPT_AND_CHANGE = "Accept and change"
    ACCEPT_WITHOUT_CHANGE = "Accept without change"
    REJECT = "Reject"

    RECOGNIZED = (PENDING, ACCEPT_AND_CHANGE, ACCEPT_WITHOUT_CHANGE, REJECT)


class User(BaseModel):
    id: str
    username: str
    password: str
    name: str


class Portfolio(BaseModel):
    id: str
    userId: str
    name: str
    type: str
    value: float = Field(ge=0)
    performance: float
    riskLevel: str  # "Low", "Medium" or "High"
    lastUpdated: Optional[datetime] = None


class Goal(BaseModel):
    id: str
    userId: str
    totalAssets: float
    targetProgress: float
    monthlyIncome: float
    riskScore: float
    assetsChange: float
    incomeChange: float


class AtrqResult(BaseModel):
    id: str
    userId: str
    overallScore: float
    riskProfile: str
    timeHorizon: float
    financialCapacity: float
    lossTolerance: float
    riskExperience: float
    lastUpdated: Optional[datetime] = None


class SuitabilityRule(BaseModel):
    id: str
    userId: str
    name: str
    isActive: bool = True
    conditions: Dict[str, Dict[str, Any]]
    actions: Dict[str, Any]


class MonitoringField(BaseModel):
    id: str
    userId: str
    fieldName: str
    isEnabled: bool = True
    threshold: Optional[float] = None
    alertLevel: str  # "Info", "Warning" or "Critical"


class PortfolioBreach(BaseModel):
    id: str
    portfolioId: str
    monitoringFieldId: str
    breachCondition: str
    breachValue: float
    status: str = BreachStatus.PENDING
    detectedAt: Optional[datetime] = None
    resolvedAt: Optional[datetime] = None
