"""Shared locking, observer and transaction plumbing for the stores."""
from __future__ import annotations

import logging
from contextlib import ExitStack, contextmanager
from threading import RLock
from typing import Any, Callable, Iterator, List, Optional

logger = logging.getLogger(__name__)

Observer = Callable[[str], None]


class ObservableStore:
    """Base for single-owner stores.

    Subclasses implement ``save``, ``snapshot`` and ``_restore_state``. Each
    mutation calls ``_changed`` while still holding ``_lock``; inside a
    ``transaction`` the notifications are collected and published once on
    success, or dropped together with the changes on failure. A transaction
    only counts as committed once its autosave has gone through.
    """

    def __init__(self, *, autosave: bool) -> None:
        self._lock = RLock()
        self._autosave = autosave
        self._observers: List[Observer] = []
        self._depth = 0
        self._pending: List[str] = []

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        with joint_transaction(self):
            yield self

    def restore(self, snapshot: Any) -> None:
        with self._lock:
            self._restore_state(snapshot)
            self._changed("restored")

    def save(self) -> None:  # pragma: no cover - overridden
        raise NotImplementedError

    def snapshot(self) -> Any:  # pragma: no cover - overridden
        raise NotImplementedError

    def _restore_state(self, snapshot: Any) -> None:  # pragma: no cover - overridden
        raise NotImplementedError

    def _changed(self, event: str) -> None:
        if self._depth:
            self._pending.append(event)
            return
        self._publish(event)

    def _publish(self, event: str) -> None:
        if self._autosave:
            self.save()
        self._notify(event)

    def _notify(self, event: str) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception("%s observer failed for %s", type(self).__name__, event)

    def _rollback(self, snapshot: Optional[Any]) -> None:
        if snapshot is None:
            return
        self._restore_state(snapshot)
        self._pending = []
        logger.info("%s rolled back", type(self).__name__)

    def _flush(self) -> None:
        events, self._pending = self._pending, []
        self._notify(events[0] if len(events) == 1 else "transaction")


@contextmanager
def joint_transaction(*stores: ObservableStore) -> Iterator[None]:
    """Mutate several stores as one unit.

    Locks are taken in argument order. On success every store with pending
    changes is saved first and only then are observers notified. If the body
    or any save raises, all outermost stores return to their snapshots, stores
    that were already saved are written again from the restored state, and the
    error propagates. Nested use defers everything to the outermost call.
    """
    with ExitStack() as locks:
        for store in stores:
            locks.enter_context(store._lock)
        snapshots = [store.snapshot() if store._depth == 0 else None for store in stores]
        for store in stores:
            store._depth += 1
        try:
            yield
        except Exception:
            for store, snapshot in zip(stores, snapshots):
                store._depth -= 1
                store._rollback(snapshot)
            raise
        for store in stores:
            store._depth -= 1

        owned = [(store, snapshot) for store, snapshot in zip(stores, snapshots) if snapshot is not None]
        dirty = [store for store, _ in owned if store._pending]
        saved: List[ObservableStore] = []
        try:
            for store in dirty:
                if store._autosave:
                    store.save()
                    saved.append(store)
        except Exception:
            for store, snapshot in owned:
                store._rollback(snapshot)
            for store in saved:
                try:
                    store.save()
                except Exception:
                    logger.exception("%s could not persist its restored state", type(store).__name__)
            raise
        for store in dirty:
            store._flush()
