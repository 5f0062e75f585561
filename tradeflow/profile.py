from __future__ import annotations
import logging
from typing import Any, Dict
from .lifecycle import new_id
from .models import PROFILE_FIELDS, PROFILES, CompanyProfile
from .store import Store
from .utils import iso_timestamp

logger = logging.getLogger(__name__)

# поля, по которым считается заполненность профиля
COMPLETION_FIELDS = ("name", "industry", "email", "address", "country", "taxId")


def _normalize_fields(fields: Dict[str, Any]) -> Dict[str, str]:
    # Приводит ввод к ожидаемому набору строковых полей профиля
    out: Dict[str, str] = {}
    for k in PROFILE_FIELDS:
        if k in fields:
            v = fields.get(k)
            out[k] = "" if v is None else str(v).strip()
    return out


def load_profile(store: Store, user_id: str) -> CompanyProfile:
    rows = store.list(PROFILES, {"userId": user_id}, limit=1)
    if rows:
        return CompanyProfile.from_row(rows[0])
    # профиля ещё нет - пустой, с id для будущего сохранения
    return CompanyProfile(id=new_id("profile"), user_id=user_id)


def save_profile(store: Store, user_id: str, fields: Dict[str, Any]) -> CompanyProfile:
    """
    Один профиль на пользователя: если он есть - update, иначе create.
    """
    data: Dict[str, Any] = _normalize_fields(fields)
    data["userId"] = user_id
    data["updatedAt"] = iso_timestamp()

    existing = store.list(PROFILES, {"userId": user_id}, limit=1)
    if existing:
        row = store.update(PROFILES, existing[0]["id"], data)
    else:
        data["createdAt"] = data["updatedAt"]
        row = store.create(PROFILES, new_id("profile"), data)
        logger.info("Created company profile for user %s", user_id)
    return CompanyProfile.from_row(row)


def profile_completion(profile: CompanyProfile) -> int:
    filled = sum(1 for f in COMPLETION_FIELDS if str(getattr(profile, f, "") or "").strip())
    return round(filled / len(COMPLETION_FIELDS) * 100)
