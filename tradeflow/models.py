from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from .errors import ValidationWarning
from .utils import iso_timestamp, parse_timestamp, parse_number

# Сущности внешнего хранилища
DOCUMENTS = "tradeDocuments"
RECORDS = "tradeRecords"
PROFILES = "companyProfiles"

# Статусы документа
PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
ERROR = "error"
DOCUMENT_STATUSES = (PENDING, PROCESSING, COMPLETED, ERROR)

# Уровни риска
LOW = "low"
MEDIUM = "medium"
HIGH = "high"
RISK_LEVELS = (LOW, MEDIUM, HIGH)


def _as_bool(x: Any) -> bool:
    # хранилище отдаёт флаги как bool, "1"/"0" или числа
    if isinstance(x, bool):
        return x
    if x is None:
        return False
    if isinstance(x, (int, float)):
        return x > 0
    return str(x).strip().lower() in ("1", "true", "yes")


def _as_str(x: Any) -> str:
    return "" if x is None else str(x)


@dataclass(frozen=True)
class TradeRecord:
    product_code: str = ""
    product_description: str = ""
    origin_country: str = ""
    destination_country: str = ""
    quantity: float = 0.0
    unit: str = "KG"
    value: float = 0.0
    currency: str = "USD"
    is_cbam_relevant: bool = False
    cbam_category: Optional[str] = None
    risk_level: Optional[str] = None
    compliance_score: Optional[float] = None
    source_row: int = 0
    warnings: Tuple[ValidationWarning, ...] = ()

    def __post_init__(self):
        if self.is_cbam_relevant != (self.cbam_category is not None):
            raise ValueError("cbam_category must be set if and only if the record is CBAM relevant")
        if (self.risk_level is not None or self.compliance_score is not None) and not self.is_cbam_relevant:
            raise ValueError("only CBAM relevant records carry a risk level and compliance score")
        if self.risk_level is not None and self.risk_level not in RISK_LEVELS:
            raise ValueError(f"unknown risk level: {self.risk_level!r}")
        if self.compliance_score is not None and not 0.0 <= self.compliance_score <= 100.0:
            raise ValueError(f"compliance score out of range: {self.compliance_score!r}")

    @property
    def is_scored(self) -> bool:
        return self.risk_level is not None and self.compliance_score is not None

    def with_classification(self, relevant: bool, category: Optional[str]) -> "TradeRecord":
        # смена классификации сбрасывает ранее посчитанный риск
        return replace(self, is_cbam_relevant=relevant, cbam_category=category, risk_level=None, compliance_score=None)

    def with_score(self, risk_level: str, compliance_score: float) -> "TradeRecord":
        return replace(self, risk_level=risk_level, compliance_score=compliance_score)

    def to_row(self) -> Dict[str, Any]:
        return {
            "productCode": self.product_code,
            "productDescription": self.product_description,
            "originCountry": self.origin_country,
            "destinationCountry": self.destination_country,
            "quantity": self.quantity,
            "unit": self.unit,
            "value": self.value,
            "currency": self.currency,
            "isCbamRelevant": self.is_cbam_relevant,
            "cbamCategory": self.cbam_category,
            "riskLevel": self.risk_level,
            "complianceScore": self.compliance_score,
            "sourceRow": self.source_row,
            "warnings": [w.to_dict() for w in self.warnings],
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TradeRecord":
        relevant = _as_bool(row.get("isCbamRelevant"))
        category = row.get("cbamCategory") or None
        if not relevant:
            category = None
        elif category is None:
            # сохранённая запись без категории не может считаться CBAM-релевантной
            relevant = False

        risk = row.get("riskLevel") or None
        score = parse_number(row.get("complianceScore"))
        if not relevant or risk not in RISK_LEVELS or score is None:
            risk, score = None, None

        warnings = tuple(
            ValidationWarning(str(w.get("field", "")), str(w.get("code", "")), str(w.get("raw", "")))
            for w in (row.get("warnings") or [])
            if isinstance(w, dict)
        )
        return cls(
            product_code=_as_str(row.get("productCode")),
            product_description=_as_str(row.get("productDescription")),
            origin_country=_as_str(row.get("originCountry")),
            destination_country=_as_str(row.get("destinationCountry")),
            quantity=parse_number(row.get("quantity")) or 0.0,
            unit=_as_str(row.get("unit")) or "KG",
            value=parse_number(row.get("value")) or 0.0,
            currency=_as_str(row.get("currency")) or "USD",
            is_cbam_relevant=relevant,
            cbam_category=category,
            risk_level=risk,
            compliance_score=score,
            source_row=int(parse_number(row.get("sourceRow")) or 0),
            warnings=warnings,
        )


@dataclass(frozen=True)
class TradeDocument:
    id: str
    user_id: str
    filename: str
    uploaded_at: Optional[datetime] = None
    status: str = PENDING
    total_records: int = 0
    cbam_records: int = 0
    error: str = ""

    def to_row(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "filename": self.filename,
            "uploadedAt": iso_timestamp(self.uploaded_at) if self.uploaded_at else None,
            "status": self.status,
            "totalRecords": self.total_records,
            "cbamRecords": self.cbam_records,
            "error": self.error,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TradeDocument":
        status = _as_str(row.get("status")) or PENDING
        return cls(
            id=_as_str(row.get("id")),
            user_id=_as_str(row.get("userId")),
            filename=_as_str(row.get("filename")),
            uploaded_at=parse_timestamp(row.get("uploadedAt")),
            status=status if status in DOCUMENT_STATUSES else ERROR,
            total_records=int(parse_number(row.get("totalRecords")) or 0),
            cbam_records=int(parse_number(row.get("cbamRecords")) or 0),
            error=_as_str(row.get("error")),
        )


PROFILE_FIELDS = (
    "name", "address", "country", "email", "phone",
    "website", "industry", "taxId", "description",
)


@dataclass
class CompanyProfile:
    id: str = ""
    user_id: str = ""
    name: str = ""
    address: str = ""
    country: str = ""
    email: str = ""
    phone: str = ""
    website: str = ""
    industry: str = ""
    taxId: str = ""
    description: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def fields(self) -> Dict[str, str]:
        return {k: getattr(self, k) for k in PROFILE_FIELDS}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CompanyProfile":
        known = {"id", "userId", *PROFILE_FIELDS}
        return cls(
            id=_as_str(row.get("id")),
            user_id=_as_str(row.get("userId")),
            extra={k: v for k, v in row.items() if k not in known},
            **{k: _as_str(row.get(k)).strip() for k in PROFILE_FIELDS},
        )
