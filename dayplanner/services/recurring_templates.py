"""Registry of recurring task templates."""
from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from dayplanner.models import RecurringTaskTemplate
from dayplanner.persistence.adapter import RECURRING_TASKS_KEY, PersistenceAdapter
from dayplanner.services.observable import ObservableStore

logger = logging.getLogger(__name__)

_templates_adapter = TypeAdapter(List[RecurringTaskTemplate])


class RecurringTemplateStore(ObservableStore):
    """Templates live independently of the tasks they spawned."""

    def __init__(self, adapter: Optional[PersistenceAdapter] = None, *, autosave: bool = True) -> None:
        super().__init__(autosave=autosave and adapter is not None)
        self._adapter = adapter
        self._templates: List[RecurringTaskTemplate] = []

    def load(self) -> None:
        if self._adapter is None:
            return
        data = self._adapter.load(RECURRING_TASKS_KEY)
        with self._lock:
            self._templates = []
            if data:
                try:
                    self._templates = _templates_adapter.validate_json(data)
                except ValidationError as exc:
                    logger.warning("Discarding unreadable recurring templates: %s", exc)
            self._changed("loaded")

    def save(self) -> None:
        if self._adapter is None:
            return
        with self._lock:
            self._adapter.save(RECURRING_TASKS_KEY, _templates_adapter.dump_json(self._templates))

    def snapshot(self) -> List[RecurringTaskTemplate]:
        with self._lock:
            return [template.model_copy() for template in self._templates]

    def _restore_state(self, snapshot: List[RecurringTaskTemplate]) -> None:
        self._templates = [template.model_copy() for template in snapshot]

    def list_templates(self) -> List[RecurringTaskTemplate]:
        with self._lock:
            return list(self._templates)

    def get(self, template_id: UUID) -> Optional[RecurringTaskTemplate]:
        with self._lock:
            return next((template for template in self._templates if template.id == template_id), None)

    def add(self, template: RecurringTaskTemplate) -> RecurringTaskTemplate:
        with self._lock:
            self._templates = [existing for existing in self._templates if existing.id != template.id]
            self._templates.append(template)
            self._changed("template_added")
            return template

    def update(self, template: RecurringTaskTemplate) -> Optional[RecurringTaskTemplate]:
        with self._lock:
            for index, existing in enumerate(self._templates):
                if existing.id == template.id:
                    self._templates[index] = template
                    self._changed("template_updated")
                    return template
            logger.info("Ignoring update for unknown recurring template %s", template.id)
            return None

    def delete(self, template_id: UUID) -> bool:
        """Remove the template; tasks it already generated are kept."""
        with self._lock:
            remaining = [template for template in self._templates if template.id != template_id]
            if len(remaining) == len(self._templates):
                return False
            self._templates = remaining
            self._changed("template_deleted")
            return True
