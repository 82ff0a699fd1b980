# Overview: Write serialization and retry helpers shared by every mutating service.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


_company_locks: dict[int, threading.RLock] = {}
_dispatch_locks: dict[int, threading.RLock] = {}
_registry_lock = threading.Lock()


def _lock_for_company(company_id: int, registry=_company_locks) -> threading.RLock:
    with _registry_lock:
        lock = registry.get(company_id)
        if lock is None:
            lock = threading.RLock()
            registry[company_id] = lock
        return lock


@contextmanager
def company_lock(company_id: int):
    """
    Single-writer critical section for one company's ledger and documents.

    Re-entrant, so an operation that composes other locked operations (a
    sale cancelling through the stock ledger) does not deadlock itself.
    Readers never take it.
    """
    lock = _lock_for_company(company_id)
    with lock:
        yield


@contextmanager
def dispatch_lock(company_id: int):
    """
    Serializes accounting dispatch for one company.

    Separate from company_lock so a slow accounting sink never stalls
    stock and document writers.
    """
    lock = _lock_for_company(company_id, _dispatch_locks)
    with lock:
        yield


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back and propagates.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
