# src/taskboard/core/errors.py

"""
Error taxonomy shared by backends and view components.

Backends raise RemoteError (or SchemaMismatchError when the backend rejects the
requested field set). Components never let those escape: they catch them at
their own boundary and report into an Alerts board, which the presentation
layer renders as dismissible inline messages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)

# PostgREST / Postgres error codes the engine reacts to.
UNDEFINED_COLUMN = "42703"
UNDEFINED_TABLE = "42P01"


class RemoteError(Exception):
    """A remote collaborator rejected or failed a call."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        return self.message


class SchemaMismatchError(RemoteError):
    """The backend does not know one of the requested fields (partial migration)."""


class AlertKind(StrEnum):
    ERROR = "error"
    NO_EFFECT = "no_effect"


class AlertChannel(StrEnum):
    TASKS = "tasks"
    SUBTASKS = "subtasks"
    PREFERENCES = "preferences"


@dataclass(slots=True, frozen=True)
class Alert:
    channel: AlertChannel
    kind: AlertKind
    message: str


class Alerts:
    """
    Component-scoped error state.

    One alert per channel: a newer report replaces the older one, and each
    channel is dismissed independently so a failed subtask toggle never hides
    (or is hidden by) a task-list load failure.
    """

    def __init__(self) -> None:
        self._by_channel: dict[AlertChannel, Alert] = {}

    def report(
        self,
        channel: AlertChannel,
        message: str,
        *,
        kind: AlertKind = AlertKind.ERROR,
    ) -> Alert:
        alert = Alert(channel=channel, kind=kind, message=message or "Unknown error.")
        self._by_channel[channel] = alert
        logger.debug("alert channel=%s kind=%s message=%s", channel.value, kind.value, alert.message)
        return alert

    def get(self, channel: AlertChannel) -> Alert | None:
        return self._by_channel.get(channel)

    def message(self, channel: AlertChannel) -> str:
        alert = self._by_channel.get(channel)
        return alert.message if alert else ""

    def dismiss(self, channel: AlertChannel) -> None:
        self._by_channel.pop(channel, None)

    def clear(self) -> None:
        self._by_channel.clear()

    def active(self) -> list[Alert]:
        return [self._by_channel[c] for c in AlertChannel if c in self._by_channel]

    def __bool__(self) -> bool:
        return bool(self._by_channel)
