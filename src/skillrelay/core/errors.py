"""Typed errors raised by skillrelay components."""

from __future__ import annotations

from typing import Any

__all__ = [
    "ConfigurationError",
    "SkillInvocationError",
    "SkillRelayError",
    "StateStoreError",
    "UnknownMappingError",
]


class SkillRelayError(Exception):
    """Base exception for all skillrelay errors."""


class UnknownMappingError(SkillRelayError):
    """Skill conversation ID was never issued or has been invalidated."""

    def __init__(self, skill_conversation_id: str) -> None:
        super().__init__(f"Unknown skill conversation id: {skill_conversation_id!r}")
        self.skill_conversation_id = skill_conversation_id


class SkillInvocationError(SkillRelayError):
    """Forwarding an activity to a skill failed.

    ``status`` is ``None`` when the call never produced an HTTP response
    (connection failure, deadline exceeded); ``transport`` is then ``True``.
    """

    def __init__(
        self,
        skill_id: str,
        endpoint: str,
        status: int | None = None,
        body: Any = None,
        *,
        transport: bool = False,
    ) -> None:
        status_str = "transport failure" if status is None else f"status is {status}"
        super().__init__(
            f'Error invoking the skill id: "{skill_id}" at "{endpoint}" ({status_str}). {body}'
        )
        self.skill_id = skill_id
        self.endpoint = endpoint
        self.status = status
        self.body = body
        self.transport = transport


class StateStoreError(SkillRelayError):
    """Reading, writing or deleting persisted conversation state failed."""


class ConfigurationError(SkillRelayError):
    """Skill configuration is missing or references an unregistered skill."""
