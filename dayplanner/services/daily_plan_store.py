"""Accepted plan entries keyed by calendar day."""
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from dayplanner.models import PlannedTask
from dayplanner.persistence.adapter import DAILY_PLANS_KEY, PersistenceAdapter
from dayplanner.services.observable import ObservableStore
from dayplanner.services.time_math import parse_time_string

logger = logging.getLogger(__name__)

_plans_adapter = TypeAdapter(Dict[date, List[PlannedTask]])


def _entry_sort_key(entry: PlannedTask):
    parsed = parse_time_string(entry.start_time)
    return (parsed is None, parsed or 0)


class DailyPlanStore(ObservableStore):
    """Plan entries per day with completion tracking."""

    def __init__(self, adapter: Optional[PersistenceAdapter] = None, *, autosave: bool = True) -> None:
        super().__init__(autosave=autosave and adapter is not None)
        self._adapter = adapter
        self._plans: Dict[date, List[PlannedTask]] = {}

    def load(self) -> None:
        if self._adapter is None:
            return
        data = self._adapter.load(DAILY_PLANS_KEY)
        with self._lock:
            self._plans = {}
            if data:
                try:
                    self._plans = _plans_adapter.validate_json(data)
                except ValidationError as exc:
                    logger.warning("Discarding unreadable daily plans: %s", exc)
            for day, entries in self._plans.items():
                self._plans[day] = _unique_by_id(entries)
            self._changed("loaded")

    def save(self) -> None:
        if self._adapter is None:
            return
        with self._lock:
            self._adapter.save(DAILY_PLANS_KEY, self.to_bytes())

    def to_bytes(self) -> bytes:
        with self._lock:
            return _plans_adapter.dump_json(self._plans)

    def snapshot(self) -> Dict[date, List[PlannedTask]]:
        with self._lock:
            return {day: [entry.model_copy() for entry in entries] for day, entries in self._plans.items()}

    def _restore_state(self, snapshot: Dict[date, List[PlannedTask]]) -> None:
        self._plans = {day: [entry.model_copy() for entry in entries] for day, entries in snapshot.items()}

    def days(self) -> List[date]:
        with self._lock:
            return sorted(day for day, entries in self._plans.items() if entries)

    def get_plan(self, day: date) -> List[PlannedTask]:
        with self._lock:
            return [entry.model_copy() for entry in self._plans.get(day, [])]

    def save_plan(self, day: date, entries: Iterable[PlannedTask]) -> List[PlannedTask]:
        """Replace the whole plan for ``day``."""
        with self._lock:
            stamped = [entry.model_copy(update={"date": day}) for entry in entries]
            self._plans[day] = sorted(_unique_by_id(stamped), key=_entry_sort_key)
            self._changed("plan_saved")
            return list(self._plans[day])

    def upsert_entries(self, day: date, entries: Iterable[PlannedTask]) -> List[PlannedTask]:
        """Insert or replace entries by id, keeping the rest of the day intact."""
        with self._lock:
            current = {entry.id: entry for entry in self._plans.get(day, [])}
            for entry in entries:
                current[entry.id] = entry.model_copy(update={"date": day})
            self._plans[day] = sorted(current.values(), key=_entry_sort_key)
            self._changed("entries_upserted")
            return list(self._plans[day])

    def remove_entries(self, day: date, entry_ids: Iterable[UUID]) -> int:
        with self._lock:
            doomed: Set[UUID] = set(entry_ids)
            entries = self._plans.get(day, [])
            kept = [entry for entry in entries if entry.id not in doomed]
            removed = len(entries) - len(kept)
            if removed:
                self._plans[day] = kept
                self._changed("entries_removed")
            return removed

    def remove_everywhere(self, entry_ids: Iterable[UUID]) -> int:
        doomed = set(entry_ids)
        with self.transaction():
            return sum(self.remove_entries(day, doomed) for day in list(self._plans))

    def clear_plan(self, day: date) -> bool:
        with self._lock:
            if not self._plans.pop(day, None):
                return False
            self._changed("plan_cleared")
            return True

    def mark_completed(self, day: date, entry_id: UUID, completed: bool = True) -> Optional[PlannedTask]:
        with self._lock:
            entries = self._plans.get(day, [])
            for index, entry in enumerate(entries):
                if entry.id == entry_id:
                    entries[index] = entry.model_copy(update={"is_completed": completed})
                    self._changed("entry_completed")
                    return entries[index]
            return None


def _unique_by_id(entries: Iterable[PlannedTask]) -> List[PlannedTask]:
    seen: Set[UUID] = set()
    unique: List[PlannedTask] = []
    for entry in entries:
        if entry.id in seen:
            logger.info("Dropped duplicate plan entry %s", entry.id)
            continue
        seen.add(entry.id)
        unique.append(entry)
    return unique
