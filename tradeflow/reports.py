from __future__ import annotations
from typing import Any, Dict, Optional
from .aggregate import aggregate, percent
from .lifecycle import list_documents, load_records
from .models import HIGH, PROCESSING
from .scoring import RiskScorer
from .store import Store


def dashboard_summary(store: Store, user_id: str, recent: int = 5) -> Dict[str, Any]:
    documents = list_documents(store, user_id)
    records = load_records(store, user_id)
    result = aggregate(records)
    return {
        "totalDocuments": len(documents),
        "processingDocuments": sum(1 for d in documents if d.status == PROCESSING),
        "totalRecords": result.total_records,
        "cbamRecords": result.cbam_relevant_count,
        "cbamShare": percent(result.cbam_relevant_count, result.total_records),
        "uniqueCountries": result.unique_countries,
        "recentDocuments": documents[:recent],
    }


def cbam_analysis(store: Store, user_id: str, scorer: Optional[RiskScorer] = None) -> Dict[str, Any]:
    """
    CBAM-релевантные записи пользователя с риском.
    Записи, сохранённые без скоринга, досчитываются на лету (в хранилище не пишем).
    """
    scorer = scorer or RiskScorer()
    records = [
        r if r.is_scored else scorer.score_record(r)
        for r in load_records(store, user_id, cbam_only=True)
    ]
    result = aggregate(records, scorer.rules.risk_weights)
    return {
        "result": result,
        "highRiskRecords": [r for r in records if r.risk_level == HIGH][:10],
        "records": records[:20],
    }
