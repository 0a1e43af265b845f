"""Push-based subscriptions to client ledgers.

Listeners receive the full current result set once when they subscribe and
again after every committed transaction that touched a matching ledger.
Write paths mark the clients they touch on the session; the feed reacts to
the session ``after_commit`` event and reloads the affected ledgers through
a fresh session on the same engine.
"""

from __future__ import annotations

import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from .. import models, schemas

LOGGER = logging.getLogger(__name__)

TOUCHED_LEDGERS_KEY = "practice.touched_ledgers"

ChangeCallback = Callable[[list[schemas.LedgerEntryRead]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


def mark_ledger_touched(db: Session, client_id: str) -> None:
    """Record that the current transaction modified ``client_id``'s ledger."""

    db.info.setdefault(TOUCHED_LEDGERS_KEY, set()).add(str(client_id))


def _engine_of(bind: Any) -> Any:
    return getattr(bind, "engine", bind)


@dataclass
class _Listener:
    key: int
    bind: Any
    client_id: Optional[str]
    on_change: ChangeCallback
    on_error: Optional[ErrorCallback]


class LedgerFeed:
    """Registry of ledger listeners with explicit disposal."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[int, _Listener] = {}
        self._keys = itertools.count(1)
        self._installed_on: list[Any] = []
        # event.remove needs the exact callable that was registered
        self._commit_hook = self._after_commit

    def install(self, target: Any = Session) -> None:
        """Publish after commits of sessions created from ``target``."""

        if target in self._installed_on:
            return
        event.listen(target, "after_commit", self._commit_hook)
        self._installed_on.append(target)

    def uninstall(self) -> None:
        for target in self._installed_on:
            event.remove(target, "after_commit", self._commit_hook)
        self._installed_on.clear()

    def subscribe(
        self,
        bind: Any,
        client_id: str,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Unsubscribe:
        """Follow one client's ledger, ordered by event time descending."""

        return self._register(bind, str(client_id), on_change, on_error)

    def subscribe_all(
        self,
        bind: Any,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Unsubscribe:
        """Follow every client's ledger; entries arrive unordered."""

        return self._register(bind, None, on_change, on_error)

    @contextmanager
    def subscription(
        self,
        bind: Any,
        client_id: str,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Iterator[Unsubscribe]:
        unsubscribe = self.subscribe(bind, client_id, on_change, on_error)
        try:
            yield unsubscribe
        finally:
            unsubscribe()

    @contextmanager
    def subscription_all(
        self,
        bind: Any,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Iterator[Unsubscribe]:
        unsubscribe = self.subscribe_all(bind, on_change, on_error)
        try:
            yield unsubscribe
        finally:
            unsubscribe()

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def publish(self, bind: Any, client_ids: set[str]) -> None:
        """Deliver fresh snapshots to listeners affected by ``client_ids``."""

        if not client_ids:
            return
        engine = _engine_of(bind)
        with self._lock:
            targets = [
                listener
                for listener in self._listeners.values()
                if _engine_of(listener.bind) is engine
                and (listener.client_id is None or listener.client_id in client_ids)
            ]
        for listener in targets:
            self._deliver(listener)

    def _register(
        self,
        bind: Any,
        client_id: Optional[str],
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback],
    ) -> Unsubscribe:
        listener = _Listener(
            key=next(self._keys),
            bind=bind,
            client_id=client_id,
            on_change=on_change,
            on_error=on_error,
        )
        with self._lock:
            self._listeners[listener.key] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(listener.key, None)

        self._deliver(listener)
        return unsubscribe

    def _deliver(self, listener: _Listener) -> None:
        try:
            entries = self._load(listener)
        except Exception as exc:
            LOGGER.warning("Unable to load ledger snapshot: %s", exc)
            if listener.on_error is not None:
                try:
                    listener.on_error(exc)
                except Exception:
                    LOGGER.exception(
                        "Ledger listener %s failed while handling an error", listener.key
                    )
            return

        with self._lock:
            if listener.key not in self._listeners:
                return
        try:
            listener.on_change(entries)
        except Exception:
            LOGGER.exception("Ledger listener %s failed while handling a snapshot", listener.key)

    @staticmethod
    def _load(listener: _Listener) -> list[schemas.LedgerEntryRead]:
        with Session(bind=listener.bind) as session:
            query = session.query(models.ClientLedgerEntry)
            if listener.client_id is not None:
                query = query.filter(
                    models.ClientLedgerEntry.client_id == listener.client_id
                ).order_by(
                    models.ClientLedgerEntry.at.desc(),
                    models.ClientLedgerEntry.created_at.desc(),
                )
            return [schemas.LedgerEntryRead.model_validate(entry) for entry in query.all()]

    def _after_commit(self, session: Session) -> None:
        # marks stay in place for every installed feed and are cleared when
        # the transaction ends
        touched = session.info.get(TOUCHED_LEDGERS_KEY)
        if not touched:
            return
        self.publish(session.get_bind(), set(touched))


@event.listens_for(Session, "after_transaction_end")
def _clear_touched_ledgers(session: Session, transaction: Any) -> None:
    if transaction.parent is None:
        session.info.pop(TOUCHED_LEDGERS_KEY, None)


ledger_feed = LedgerFeed()
ledger_feed.install()
