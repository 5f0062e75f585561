"""
Этот пакет содержит:
- загрузку таблиц деклараций (CSV/XLSX, только первый лист)
- приведение колонок к каноническим записям (алиасы, в т.ч. турецкие)
- классификацию CBAM-категорий
- оценку риска и compliance score
- агрегацию по странам/категориям/маршрутам
- жизненный цикл документов поверх внешнего хранилища
- экспорт (JSON-снимок, Excel-отчёт)
"""
from .errors import ParseError, PersistenceError, InvalidTransition, UploadCancelled, ValidationWarning
from .models import TradeRecord, TradeDocument, CompanyProfile
from .rules import Rules, load_rules, default_rules
from .normalize import normalize, resolve_columns
from .classify import CbamClassifier, classify
from .scoring import RiskScorer, score
from .aggregate import AggregationResult, aggregate, percent
from .store import InMemoryStore, JsonFileStore
from .lifecycle import transition_document, delete_document, delete_record, delete_all_user_data, load_records
from .pipeline import UploadProcessor, UploadResult
from .profile import load_profile, save_profile, profile_completion
from .reports import dashboard_summary, cbam_analysis
from .export import build_user_export, export_user_data_json, export_filename, export_report_to_excel_bytes

__all__ = [
    "ParseError",
    "PersistenceError",
    "InvalidTransition",
    "UploadCancelled",
    "ValidationWarning",
    "TradeRecord",
    "TradeDocument",
    "CompanyProfile",
    "Rules",
    "load_rules",
    "default_rules",
    "normalize",
    "resolve_columns",
    "CbamClassifier",
    "classify",
    "RiskScorer",
    "score",
    "AggregationResult",
    "aggregate",
    "percent",
    "InMemoryStore",
    "JsonFileStore",
    "transition_document",
    "delete_document",
    "delete_record",
    "delete_all_user_data",
    "load_records",
    "UploadProcessor",
    "UploadResult",
    "load_profile",
    "save_profile",
    "profile_completion",
    "dashboard_summary",
    "cbam_analysis",
    "build_user_export",
    "export_user_data_json",
    "export_filename",
    "export_report_to_excel_bytes",
]
