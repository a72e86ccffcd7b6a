# src/taskboard/tasks/filter_prefs.py

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import AlertChannel, Alerts
from ..core.ports import KeyValueSlot
from .filters import ALL, EFFORT_CHOICES, PRIORITY_CHOICES, FilterState, SortMode, StatusFilter
from .task_models import ViewMode
from .views import SectionGrouping

logger = logging.getLogger(__name__)

KEY_PREFIX = "taskboard:filters"


@dataclass(slots=True, frozen=True)
class ViewPrefs:
    """Everything remembered per (user, project)."""

    filters: FilterState = field(default_factory=FilterState)
    view_mode: ViewMode = ViewMode.LIST
    sections_grouping: SectionGrouping = SectionGrouping.DATES


def storage_key(user_id: str | None, project_id: str | None) -> str | None:
    if not user_id or not project_id:
        return None
    return f"{KEY_PREFIX}:{user_id}:{project_id}"


def encode_prefs(prefs: ViewPrefs) -> str:
    f = prefs.filters
    payload = {
        "status": f.status.value,
        "assignee": f.assignee,
        "priority": f.priority,
        "effort": f.effort,
        "tag": f.tag,
        "query": f.query,
        "created_from": f.created_from,
        "created_to": f.created_to,
        "due_before": f.due_before,
        "completed_before": f.completed_before,
        "sort_mode": f.sort_mode.value,
        "view_mode": prefs.view_mode.value,
        "sections_grouping": prefs.sections_grouping.value,
    }
    return json.dumps(payload, ensure_ascii=False, sort_keys=True)


def _choice(raw: Any, allowed: frozenset[str] | set[str], default: str) -> str:
    if isinstance(raw, str) and raw in allowed:
        return raw
    return default


def _text(raw: Any) -> str:
    return raw if isinstance(raw, str) else ""


def decode_prefs(raw: str | None) -> ViewPrefs:
    """
    Parse a stored payload field by field.

    Anything unknown or malformed falls back to that field's default; a broken
    payload as a whole yields the defaults.
    """
    if not raw:
        return ViewPrefs()
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Stored filter preferences are not valid JSON; using defaults")
        return ViewPrefs()
    if not isinstance(data, dict):
        return ViewPrefs()

    assignee = data.get("assignee")
    filters = FilterState(
        status=StatusFilter(_choice(data.get("status"), {s.value for s in StatusFilter}, StatusFilter.ALL)),
        assignee=assignee if isinstance(assignee, str) and assignee else ALL,
        priority=_choice(data.get("priority"), PRIORITY_CHOICES, ALL),
        effort=_choice(data.get("effort"), EFFORT_CHOICES, ALL),
        tag=_text(data.get("tag")),
        query=_text(data.get("query")),
        created_from=_text(data.get("created_from")),
        created_to=_text(data.get("created_to")),
        due_before=_text(data.get("due_before")),
        completed_before=_text(data.get("completed_before")),
        sort_mode=SortMode(_choice(data.get("sort_mode"), {m.value for m in SortMode}, SortMode.DEFAULT)),
    )
    view_mode = ViewMode(_choice(data.get("view_mode"), {m.value for m in ViewMode}, ViewMode.LIST))
    grouping = SectionGrouping(
        _choice(data.get("sections_grouping"), {g.value for g in SectionGrouping}, SectionGrouping.DATES)
    )
    return ViewPrefs(filters=filters, view_mode=view_mode, sections_grouping=grouping)


class FilterPersistence:
    """
    Per-(user, project) preference slot.

    load() must run before save() does anything: until then writes are ignored
    so the defaults shown while loading never overwrite what is stored.
    Without a user or a project there is no key and nothing is persisted.
    """

    def __init__(self, slot: KeyValueSlot | None, alerts: Alerts | None = None) -> None:
        self._slot = slot
        self._alerts = alerts
        self._key: str | None = None
        self.initialized = False

    @property
    def key(self) -> str | None:
        return self._key

    def load(self, user_id: str | None, project_id: str | None) -> ViewPrefs:
        self._key = storage_key(user_id, project_id)
        self.initialized = False

        if self._key is None or self._slot is None:
            self.initialized = True
            return ViewPrefs()

        raw: str | None = None
        try:
            raw = self._slot.get(self._key)
        except Exception:
            logger.exception("Failed to read filter preferences key=%s", self._key)
            self._report("Could not load saved filters.")
        finally:
            self.initialized = True

        prefs = decode_prefs(raw)
        logger.debug("Loaded filter preferences key=%s found=%s", self._key, raw is not None)
        return prefs

    def save(self, prefs: ViewPrefs) -> bool:
        if not self.initialized or self._key is None or self._slot is None:
            return False
        try:
            self._slot.set(self._key, encode_prefs(prefs))
        except Exception:
            logger.exception("Failed to save filter preferences key=%s", self._key)
            self._report("Could not save filters.")
            return False
        return True

    def _report(self, message: str) -> None:
        if self._alerts is not None:
            self._alerts.report(AlertChannel.PREFERENCES, message)
