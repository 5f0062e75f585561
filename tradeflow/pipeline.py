from __future__ import annotations
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, List, Optional, Tuple
from .classify import CbamClassifier
from .errors import ParseError, PersistenceError, UploadCancelled
from .ingest import detect_format
from .lifecycle import get_document, new_id, refresh_document_counts, transition_document
from .models import COMPLETED, DOCUMENTS, ERROR, PENDING, PROCESSING, RECORDS, TradeDocument, TradeRecord
from .normalize import normalize
from .rules import Rules, default_rules
from .scoring import RiskScorer
from .store import Store
from .utils import iso_timestamp, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadResult:
    filename: str
    status: str
    document: Optional[TradeDocument] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == COMPLETED


class UploadProcessor:
    """
    Файл -> нормализация -> классификация CBAM -> скоринг -> запись в хранилище.

    Порядок записи для одного документа:
      1) документ (pending), затем processing
      2) записи - по одной, в порядке строк файла
      3) completed - только после успешной записи всех строк
    Ошибка хранилища переводит документ в error с причиной.
    """

    def __init__(
        self,
        store: Store,
        rules: Optional[Rules] = None,
        classifier: Optional[CbamClassifier] = None,
        scorer: Optional[RiskScorer] = None,
    ):
        self.store = store
        self.rules = rules or default_rules()
        self.classifier = classifier or CbamClassifier(self.rules.cbam)
        self.scorer = scorer or RiskScorer(self.rules.risk)

    def analyze(self, data: bytes, fmt: str) -> List[TradeRecord]:
        # чистая часть конвейера, без хранилища
        records = normalize(data, fmt, self.rules)
        return self.scorer.score_all(self.classifier.classify_all(records))

    def _create_document(self, user_id: str, filename: str, uploaded_at: datetime) -> TradeDocument:
        doc = TradeDocument(
            id=new_id("doc"),
            user_id=user_id,
            filename=filename,
            uploaded_at=uploaded_at,
            status=PENDING,
        )
        row = self.store.create(DOCUMENTS, doc.id, doc.to_row())
        return TradeDocument.from_row(row)

    def _write_records(
        self,
        document: TradeDocument,
        records: List[TradeRecord],
        cancel: Optional[threading.Event],
    ) -> None:
        for i, rec in enumerate(records):
            if cancel is not None and cancel.is_set():
                refresh_document_counts(self.store, document.id)
                raise UploadCancelled(document.id, i)
            fields = rec.to_row()
            fields.update({
                "documentId": document.id,
                "userId": document.user_id,
                "createdAt": iso_timestamp(),
            })
            self.store.create(RECORDS, new_id("rec"), fields)

    def process_file(
        self,
        user_id: str,
        filename: str,
        data: bytes,
        fmt: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> TradeDocument:
        """
        ParseError поднимается до создания документа.
        UploadCancelled оставляет документ в processing (можно найти и перезапустить).
        PersistenceError -> документ в error; возвращается документ.
        """
        fmt = fmt or detect_format(filename)
        records = self.analyze(data, fmt)
        cbam = sum(1 for r in records if r.is_cbam_relevant)
        logger.info("%s: %d record(s), %d CBAM relevant", filename, len(records), cbam)

        doc: Optional[TradeDocument] = None
        try:
            doc = self._create_document(user_id, filename, utc_now())
            doc = transition_document(self.store, doc, PROCESSING)
            self._write_records(doc, records, cancel)
            return transition_document(self.store, doc, COMPLETED, expected_records=len(records))
        except PersistenceError as e:
            logger.error("%s: storage failure: %s", filename, e)
            if doc is None:
                raise
            return self._fail(doc, str(e))

    def _fail(self, doc: TradeDocument, cause: str) -> TradeDocument:
        try:
            return transition_document(self.store, doc, ERROR, error=cause)
        except PersistenceError as e:
            # статус не обновился: документ остаётся в processing и виден как незавершённый
            logger.error("Document %s: cannot record failure: %s", doc.id, e)
            return replace(doc, error=cause)

    def process_batch(
        self,
        user_id: str,
        files: Iterable[Tuple[str, bytes]],
        cancel: Optional[threading.Event] = None,
    ) -> List[UploadResult]:
        """
        Файлы обрабатываются по очереди и независимо друг от друга:
        ошибка разбора одного файла не останавливает остальные.
        Отмена останавливает пакет; завершённые документы не откатываются.
        """
        results: List[UploadResult] = []
        for filename, data in files:
            if cancel is not None and cancel.is_set():
                logger.info("Batch cancelled before %s", filename)
                break
            try:
                doc = self.process_file(user_id, filename, data, cancel=cancel)
            except ParseError as e:
                logger.warning("%s: cannot parse: %s", filename, e)
                results.append(UploadResult(filename, ERROR, error=str(e)))
                continue
            except PersistenceError as e:
                results.append(UploadResult(filename, ERROR, error=str(e)))
                continue
            except UploadCancelled as e:
                logger.warning("%s: %s", filename, e)
                doc = get_document(self.store, e.document_id)
                results.append(UploadResult(filename, PROCESSING, doc, str(e)))
                break
            results.append(UploadResult(filename, doc.status, doc, doc.error))
        return results
