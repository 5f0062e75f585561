from io import BytesIO

import pytest
from openpyxl import Workbook

from tradeflow.models import RECORDS
from tradeflow.pipeline import UploadProcessor
from tradeflow.store import InMemoryStore


def csv_bytes(rows, delimiter=",", encoding="utf-8"):
    text = "\n".join(delimiter.join(str(c) for c in row) for row in rows) + "\n"
    return text.encode(encoding)


def xlsx_bytes(*sheets):
    """Каждый аргумент - список строк одного листа."""
    wb = Workbook()
    wb.remove(wb.active)
    for i, rows in enumerate(sheets):
        ws = wb.create_sheet(f"Sheet{i + 1}")
        for row in rows:
            ws.append(list(row))
    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


TRADE_ROWS = [
    ["Code", "Description", "Country", "Quantity", "Value"],
    ["7301", "steel pipe", "China", "100", "50000"],
    ["7601", "aluminium sheet", "Turkey", "20", "12000"],
    ["6109", "cotton t-shirts", "France", "500", "1000"],
    ["2523", "portland cement", "Brazil", "40", "2000"],
]


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def processor(store):
    return UploadProcessor(store)


@pytest.fixture
def trade_csv():
    return csv_bytes(TRADE_ROWS)


class FlakyStore(InMemoryStore):
    """Падает (или "теряет" запись) на N-й записи tradeRecords."""

    def __init__(self, fail_on=None, drop_on=None, on_record=None):
        super().__init__()
        self.fail_on = fail_on
        self.drop_on = drop_on
        self.on_record = on_record
        self.record_creates = 0
        self.ops = []

    def create(self, entity, id, fields):
        if entity == RECORDS:
            self.record_creates += 1
            if self.on_record is not None:
                self.on_record(self.record_creates)
            if self.record_creates == self.fail_on:
                from tradeflow.errors import PersistenceError
                raise PersistenceError("connection reset by peer")
            if self.record_creates == self.drop_on:
                return dict(fields, id=id)
        self.ops.append(("create", entity, id))
        return super().create(entity, id, fields)

    def delete(self, entity, id):
        self.ops.append(("delete", entity, id))
        return super().delete(entity, id)
