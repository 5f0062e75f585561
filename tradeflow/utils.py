import os
import re
import json
import math
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from dateutil import parser as dtparser

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_DATA_DIR = BASE_DIR / "data"

_DATA_DIR_ENV = os.environ.get("TRADEFLOW_DATA_DIR")
APPDATA = os.environ.get("APPDATA")
if _DATA_DIR_ENV:
    USER_DATA_DIR = Path(_DATA_DIR_ENV)
elif APPDATA:
    USER_DATA_DIR = Path(APPDATA) / "TradeFlow" / "data"
else:
    USER_DATA_DIR = DEFAULT_DATA_DIR  # fallback

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> int:
    # уровень из аргумента или TRADEFLOW_LOG_LEVEL, по умолчанию INFO
    name = (level or os.environ.get("TRADEFLOW_LOG_LEVEL") or "INFO").upper()
    lvl = getattr(logging, name, logging.INFO)
    if not isinstance(lvl, int):
        lvl = logging.INFO
    logging.basicConfig(format=LOG_FORMAT)
    # basicConfig ничего не делает, если у root уже есть обработчики
    logging.getLogger().setLevel(lvl)
    return lvl


def load_json(path: Path, default: Any):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return default


def save_json(path: Path, obj: Any):
    # пишем во временный файл рядом и подменяем: оборванная запись не портит старый файл
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(obj, f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)
    except BaseException:
        if tmp.exists():
            tmp.unlink()
        raise


_DASH_CHARS_RE = re.compile(r"[\u2010\u2011\u2012\u2013\u2014\u2212]")
_NBSP_RE = re.compile(r"[\u00A0\u2007\u202F]")  # NBSP варианты


def norm_text(s: Any) -> str:
    """
    Универсальная нормализация текста (заголовки колонок, страны):
    - lower
    - BOM/неразрывные пробелы
    - внешние кавычки
    - все виды тире -> '-'
    - схлопывание пробелов
    """
    if s is None:
        return ""

    s = str(s)

    # частые "невидимые" символы CSV/Excel
    s = s.replace("\ufeff", "")
    s = _NBSP_RE.sub(" ", s)
    s = s.strip()
    # убрать внешние кавычки
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ('"', "'"):
        s = s[1:-1].strip()
    s = s.lower()
    s = _DASH_CHARS_RE.sub("-", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def cell_text(v: Any) -> str:
    """
    Значение ячейки как строка:
    - None / NaN -> ""
    - целые float из Excel (7301.0) -> "7301"
    - datetime -> ISO дата
    """
    if v is None:
        return ""
    if isinstance(v, bool):
        return str(v)
    if isinstance(v, float):
        if math.isnan(v):
            return ""
        if v.is_integer():
            return str(int(v))
        return repr(v)
    if hasattr(v, "isoformat") and hasattr(v, "year"):
        return v.isoformat()
    s = str(v).replace("\ufeff", "").strip()
    if s.lower() == "nan":
        return ""
    return s


_NUM_CLEAN_RE = re.compile(r"[^0-9,.\-+eE]")


def parse_number(x: Any) -> Optional[float]:
    """
    Мягкий разбор числа. Возвращает None, если разобрать нельзя.
    Поддерживает "1 234,5", "1,234.5", "1.234,5", "$1,000", "50000".
    """
    if x is None or isinstance(x, bool):
        return None
    if isinstance(x, (int, float)):
        v = float(x)
        return v if math.isfinite(v) else None

    s = _NBSP_RE.sub("", str(x)).replace(" ", "").strip()
    s = _NUM_CLEAN_RE.sub("", s)
    if not s:
        return None

    if "," in s and "." in s:
        # разделитель дробной части - тот, что встречается последним
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        head, _, tail = s.rpartition(",")
        # "50,000" - разделитель тысяч, "12,5" - десятичная запятая
        if s.count(",") > 1 or (len(tail) == 3 and head.lstrip("+-").isdigit()):
            s = s.replace(",", "")
        else:
            s = head + "." + tail

    try:
        v = float(s)
    except ValueError:
        return None
    return v if math.isfinite(v) else None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(dt: Optional[datetime] = None) -> str:
    # ISO 8601 в UTC с миллисекундами и 'Z', как у хранилища
    dt = dt or utc_now()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(s: Any) -> Optional[datetime]:
    if s is None:
        return None
    if isinstance(s, datetime):
        return s
    txt = str(s).strip()
    if not txt:
        return None
    try:
        return dtparser.isoparse(txt)
    except (ValueError, OverflowError):
        try:
            return dtparser.parse(txt)
        except (ValueError, OverflowError):
            return None


def rules_path() -> Path:
    override = os.environ.get("TRADEFLOW_RULES")
    if override:
        return Path(override)
    return DEFAULT_DATA_DIR / "rules.json"


def store_path() -> Path:
    USER_DATA_DIR.mkdir(parents=True, exist_ok=True)
    return USER_DATA_DIR / "store.json"
