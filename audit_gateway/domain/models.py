"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


@dataclass(frozen=True)
class Transaction:
    """Structured transaction record as ingested from an uploaded file"""

    id: str
    transaction_id: str
    transaction_date: date
    amount: Decimal
    vendor_name: str
    vendor_country: str
    payment_method: str
    department: str
    description: str = ""


@dataclass(frozen=True)
class RiskFactor:
    """Why a rule fired"""

    type: str
    description: str
    severity: Severity


@dataclass
class RiskAssessment:
    """Deterministic classification plus optional advisory text"""

    transaction_id: str
    risk_level: RiskLevel
    risk_score: int
    risk_factors: List[RiskFactor]
    risk_reason: str
    audit_observation: Optional[str] = None
    risk_reason_detail: Optional[str] = None
    suggested_action: Optional[str] = None

    @property
    def triggered_rules(self) -> str:
        return ", ".join(f.type for f in self.risk_factors) or "None"

    @property
    def is_flagged(self) -> bool:
        return self.risk_level != RiskLevel.LOW


@dataclass
class AnalysisSession:
    """A batch of transactions uploaded together"""

    id: str
    user_id: str
    file_name: str
    created_at: datetime
    status: str = "processing"


@dataclass
class VendorStat:
    name: str
    count: int
    total_amount: Decimal


@dataclass
class RiskFactorStat:
    type: str
    count: int


@dataclass
class DepartmentStat:
    department: str
    count: int
    risk_score: float  # average across the department's transactions


@dataclass
class SessionStatistics:
    """Summary figures for one completed session"""

    session_id: str
    file_name: str
    analysis_date: date
    total_transactions: int
    high_risk_count: int
    medium_risk_count: int
    low_risk_count: int
    total_amount: Decimal
    top_vendors: List[VendorStat] = field(default_factory=list)
    top_risk_factors: List[RiskFactorStat] = field(default_factory=list)
    department_breakdown: List[DepartmentStat] = field(default_factory=list)


@dataclass
class ReportNarrative:
    """Narrative sections returned by the generator for an audit report"""

    executive_summary: str
    risk_posture: str
    key_risk_themes: List[dict]
    areas_of_attention: List[dict]
