"""
Жизненный цикл документа: pending -> processing -> completed | error.

Статус документа меняется только через transition_document(). Переходы в
completed и error пересчитывают записи документа в хранилище: totalRecords/
cbamRecords берутся из фактически сохранённых строк. Если при completed их
число не совпадает с ожидаемым, документ уходит в error.
"""
from __future__ import annotations
import logging
import uuid
import time
from typing import Dict, List, Optional
from .errors import InvalidTransition, PersistenceError
from .models import (
    COMPLETED, DOCUMENTS, ERROR, PENDING, PROCESSING, PROFILES, RECORDS,
    TradeDocument, TradeRecord,
)
from .store import Store

logger = logging.getLogger(__name__)

TRANSITIONS = {
    PENDING: (PROCESSING, ERROR),
    PROCESSING: (COMPLETED, ERROR),
    ERROR: (PROCESSING,),  # повторная обработка
    COMPLETED: (),
}


def new_id(prefix: str) -> str:
    # doc_<ms>_<9 hex>, rec_..., profile_...
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def get_document(store: Store, document_id: str) -> Optional[TradeDocument]:
    rows = store.list(DOCUMENTS, {"id": document_id}, limit=1)
    return TradeDocument.from_row(rows[0]) if rows else None


def list_documents(store: Store, user_id: str, limit: Optional[int] = None) -> List[TradeDocument]:
    rows = store.list(DOCUMENTS, {"userId": user_id}, order_by={"uploadedAt": "desc"}, limit=limit)
    return [TradeDocument.from_row(r) for r in rows]


def load_records(store: Store, user_id: str, document_id: Optional[str] = None, cbam_only: bool = False) -> List[TradeRecord]:
    where: Dict[str, object] = {"userId": user_id}
    if document_id is not None:
        where["documentId"] = document_id
    if cbam_only:
        where["isCbamRelevant"] = True
    return [TradeRecord.from_row(r) for r in store.list(RECORDS, where)]


def _count_persisted(store: Store, document_id: str):
    rows = store.list(RECORDS, {"documentId": document_id})
    total = len(rows)
    cbam = sum(1 for r in rows if TradeRecord.from_row(r).is_cbam_relevant)
    return total, cbam


def transition_document(
    store: Store,
    document: TradeDocument,
    target: str,
    *,
    expected_records: Optional[int] = None,
    error: str = "",
) -> TradeDocument:
    """
    Единственное место смены статуса документа.
    - completed: пересчёт записей; при расхождении с expected_records -> error
    - error: сохраняется читаемая причина
    """
    if target not in TRANSITIONS.get(document.status, ()):
        raise InvalidTransition(document.status, target)

    fields: Dict[str, object] = {"status": target, "error": ""}
    if target == COMPLETED:
        total, cbam = _count_persisted(store, document.id)
        fields.update({"totalRecords": total, "cbamRecords": cbam})
        if expected_records is not None and total != expected_records:
            fields["status"] = ERROR
            fields["error"] = f"Saved {total} of {expected_records} record(s)"
            logger.error("Document %s: record count mismatch (%d saved, %d expected)", document.id, total, expected_records)
    elif target == ERROR:
        # записи, успевшие сохраниться до сбоя, остаются и учитываются
        total, cbam = _count_persisted(store, document.id)
        fields.update({"totalRecords": total, "cbamRecords": cbam})
        fields["error"] = error or "Processing failed"

    row = store.update(DOCUMENTS, document.id, fields)
    updated = TradeDocument.from_row(row)
    logger.info("Document %s (%s): %s -> %s", document.id, document.filename, document.status, updated.status)
    return updated


def refresh_document_counts(store: Store, document_id: str) -> TradeDocument:
    # счётчики документа всегда пересчитываются из сохранённых записей
    total, cbam = _count_persisted(store, document_id)
    row = store.update(DOCUMENTS, document_id, {"totalRecords": total, "cbamRecords": cbam})
    return TradeDocument.from_row(row)


def delete_record(store: Store, record_id: str) -> Optional[TradeDocument]:
    rows = store.list(RECORDS, {"id": record_id}, limit=1)
    if not rows:
        raise PersistenceError(f"{RECORDS}: id '{record_id}' not found")
    document_id = rows[0].get("documentId")
    store.delete(RECORDS, record_id)
    if document_id and get_document(store, document_id) is not None:
        return refresh_document_counts(store, document_id)
    return None


def delete_document(store: Store, document_id: str) -> int:
    """
    Каскадное удаление: сначала записи, потом сам документ.
    Возвращает число удалённых записей.
    """
    rows = store.list(RECORDS, {"documentId": document_id})
    for r in rows:
        store.delete(RECORDS, r["id"])
    store.delete(DOCUMENTS, document_id)
    logger.info("Deleted document %s with %d record(s)", document_id, len(rows))
    return len(rows)


def delete_all_user_data(store: Store, user_id: str) -> Dict[str, int]:
    # порядок: записи -> документы -> профили
    records = store.list(RECORDS, {"userId": user_id})
    for r in records:
        store.delete(RECORDS, r["id"])
    documents = store.list(DOCUMENTS, {"userId": user_id})
    for d in documents:
        store.delete(DOCUMENTS, d["id"])
    profiles = store.list(PROFILES, {"userId": user_id})
    for p in profiles:
        store.delete(PROFILES, p["id"])
    logger.info(
        "Deleted all data for user %s: %d record(s), %d document(s), %d profile(s)",
        user_id, len(records), len(documents), len(profiles),
    )
    return {"records": len(records), "documents": len(documents), "profiles": len(profiles)}
