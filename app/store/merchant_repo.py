import copy
import json
import threading
from contextlib import contextmanager
from dataclasses import asdict, fields as dc_fields
from functools import lru_cache
from typing import Dict, List, Optional

from redis.exceptions import RedisError

from app.core.errors import DuplicateMerchantError, StoreError
from app.observability.logging import log
from app.settings import settings
from app.store.models import MerchantRecord
from app.store.redis_conn import get_redis
from app.utils.lock import redis_key_lock

PREFIX = "merchant:"
ID_PREFIX = "merchant:id:"
INDEX_KEY = "merchants:index"

IMMUTABLE_FIELDS = {"id", "phoneNumber", "createdAt"}

# Legacy document shapes (Mongo / Firestore era) -> canonical field names
_LEGACY_ALIASES = {
    "whatsappNumber": "phoneNumber",
    "merchantId": "id",
    "currentStep": "onboardingStep",
    "merchantName": "businessName",
}
_LEGACY_ONBOARDING_DATA = {
    "deliveryAddress": "deliveryAddress",
    "hardwareInstallation": "hardwareChoice",
    "productList": "productList",
    "trainingSession": "trainingInfo",
}


def _migrate_record_data(data: dict) -> dict:
    """
    Backward-compat migration for stored merchant documents.
    Maps legacy field names, flattens the nested onboardingData block and
    drops anything that is not a MerchantRecord field.
    """
    renamed = 0
    removed = 0

    for legacy, canonical in _LEGACY_ALIASES.items():
        if legacy in data:
            if data.get(canonical) in (None, ""):
                data[canonical] = data[legacy]
                renamed += 1
            del data[legacy]

    nested = data.pop("onboardingData", None)
    if isinstance(nested, dict):
        for legacy, canonical in _LEGACY_ONBOARDING_DATA.items():
            if nested.get(legacy) is not None and data.get(canonical) is None:
                data[canonical] = nested[legacy]
                renamed += 1

    allowed = {f.name for f in dc_fields(MerchantRecord)}
    for k in list(data.keys()):
        if k not in allowed:
            del data[k]
            removed += 1

    if not isinstance(data.get("conversationHistory"), list):
        data["conversationHistory"] = []

    if renamed or removed:
        log(
            "record_migrated",
            phoneNumber=data.get("phoneNumber") or "",
            renamedFields=renamed,
            removedFields=removed,
        )
    return data


def record_from_dict(data: dict) -> MerchantRecord:
    return MerchantRecord(**_migrate_record_data(dict(data)))


def record_to_dict(record: MerchantRecord) -> dict:
    return asdict(record)


def changed_fields(before: MerchantRecord, after: MerchantRecord) -> dict:
    """Mutable fields whose value differs between two versions of a record."""
    b = record_to_dict(before)
    a = record_to_dict(after)
    return {k: v for k, v in a.items() if k not in IMMUTABLE_FIELDS and b.get(k) != v}


def _apply_fields(record: MerchantRecord, fields: dict) -> MerchantRecord:
    allowed = {f.name for f in dc_fields(MerchantRecord)} - IMMUTABLE_FIELDS
    for k, v in fields.items():
        if k not in allowed:
            raise StoreError(f"Field {k!r} cannot be updated")
        setattr(record, k, copy.deepcopy(v))
    return record


class InMemoryMerchantStore:
    """
    Process-local store for demos and tests. Records are copied in and out.
    Per-phone locking uses a fixed pool of striped locks, so unrelated numbers
    may share a stripe but memory stays bounded. Locks are never nested.
    """

    LOCK_STRIPES = 64

    def __init__(self):
        self._records: Dict[str, MerchantRecord] = {}
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(self.LOCK_STRIPES)]

    def _stripe(self, phone_number: str) -> threading.Lock:
        return self._locks[hash(phone_number) % len(self._locks)]

    @contextmanager
    def lock(self, phone_number: str):
        with self._stripe(phone_number):
            yield

    def find(self, phone_number: str) -> Optional[MerchantRecord]:
        rec = self._records.get(phone_number)
        return copy.deepcopy(rec) if rec else None

    def find_by_id(self, merchant_id: str) -> Optional[MerchantRecord]:
        for rec in self._records.values():
            if rec.id == merchant_id:
                return copy.deepcopy(rec)
        return None

    def create(self, record: MerchantRecord) -> MerchantRecord:
        if record.phoneNumber in self._records:
            raise DuplicateMerchantError(record.phoneNumber)
        self._records[record.phoneNumber] = copy.deepcopy(record)
        return record

    def update(self, phone_number: str, fields: dict) -> MerchantRecord:
        rec = self._records.get(phone_number)
        if rec is None:
            raise StoreError(f"No merchant for {phone_number}")
        _apply_fields(rec, fields)
        return copy.deepcopy(rec)

    def delete(self, phone_number: str) -> bool:
        return self._records.pop(phone_number, None) is not None

    def all(self) -> List[MerchantRecord]:
        return [copy.deepcopy(r) for r in self._records.values()]


class RedisMerchantStore:
    """
    Merchant documents stored as JSON under merchant:<phone>, with an id
    index (merchant:id:<id> -> phone) and a set of known phone numbers.
    """

    def __init__(self, redis_client=None):
        self._r = redis_client

    @property
    def r(self):
        if self._r is None:
            self._r = get_redis()
        return self._r

    @staticmethod
    def _key(phone_number: str) -> str:
        return f"{PREFIX}{phone_number}"

    @contextmanager
    def lock(self, phone_number: str):
        with redis_key_lock(self.r, f"{PREFIX}{phone_number}", ttl_ms=settings.MERCHANT_LOCK_TTL_MS):
            yield

    def _load(self, phone_number: str) -> Optional[MerchantRecord]:
        try:
            raw = self.r.get(self._key(phone_number))
        except RedisError as e:
            raise StoreError(f"Redis read failed for {phone_number}: {e}") from e
        if not raw:
            return None
        return record_from_dict(json.loads(raw))

    def _save(self, record: MerchantRecord) -> None:
        try:
            pipe = self.r.pipeline()
            pipe.set(self._key(record.phoneNumber), json.dumps(record_to_dict(record)))
            pipe.set(f"{ID_PREFIX}{record.id}", record.phoneNumber)
            pipe.sadd(INDEX_KEY, record.phoneNumber)
            pipe.execute()
        except RedisError as e:
            raise StoreError(f"Redis write failed for {record.phoneNumber}: {e}") from e

    def find(self, phone_number: str) -> Optional[MerchantRecord]:
        return self._load(phone_number)

    def find_by_id(self, merchant_id: str) -> Optional[MerchantRecord]:
        try:
            phone = self.r.get(f"{ID_PREFIX}{merchant_id}")
        except RedisError as e:
            raise StoreError(f"Redis read failed for {merchant_id}: {e}") from e
        if not phone:
            return None
        rec = self._load(phone)
        # A stale index entry can outlive a restart of the same phone number
        if rec is None or rec.id != merchant_id:
            return None
        return rec

    def create(self, record: MerchantRecord) -> MerchantRecord:
        if self._load(record.phoneNumber) is not None:
            raise DuplicateMerchantError(record.phoneNumber)
        self._save(record)
        return record

    def update(self, phone_number: str, fields: dict) -> MerchantRecord:
        rec = self._load(phone_number)
        if rec is None:
            raise StoreError(f"No merchant for {phone_number}")
        _apply_fields(rec, fields)
        self._save(rec)
        return rec

    def delete(self, phone_number: str) -> bool:
        rec = self._load(phone_number)
        if rec is None:
            return False
        try:
            pipe = self.r.pipeline()
            pipe.delete(self._key(phone_number))
            pipe.delete(f"{ID_PREFIX}{rec.id}")
            pipe.srem(INDEX_KEY, phone_number)
            pipe.execute()
        except RedisError as e:
            raise StoreError(f"Redis delete failed for {phone_number}: {e}") from e
        return True

    def all(self) -> List[MerchantRecord]:
        try:
            phones = sorted(self.r.smembers(INDEX_KEY) or [])
        except RedisError as e:
            raise StoreError(f"Redis index read failed: {e}") from e
        out = []
        for phone in phones:
            rec = self._load(phone)
            if rec is not None:
                out.append(rec)
        return out


@lru_cache(maxsize=1)
def get_store():
    if settings.STORE_BACKEND == "redis":
        return RedisMerchantStore()
    return InMemoryMerchantStore()
