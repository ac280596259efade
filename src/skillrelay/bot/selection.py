"""Policies deciding when local turn logic hands the conversation to a skill."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping

from skillrelay.models.activity import Activity


class SkillSelector(ABC):
    """Decides whether an Idle conversation's message activates a skill."""

    @abstractmethod
    def select(self, activity: Activity) -> str | None:
        """Return the skill ID to activate for *activity*, or ``None`` to stay local."""
        ...

    @property
    @abstractmethod
    def skill_ids(self) -> list[str]:
        """Every skill ID this selector can return, validated at startup."""
        ...


class KeywordSkillSelector(SkillSelector):
    """Activates a skill when the message text contains a keyword.

    Rules are checked in insertion order; the first keyword found wins::

        KeywordSkillSelector({"skill": "EchoSkillBot"})
    """

    def __init__(self, rules: Mapping[str, str], *, case_sensitive: bool = False) -> None:
        if not rules:
            raise ValueError("KeywordSkillSelector needs at least one rule")
        self._case_sensitive = case_sensitive
        self._rules = {self._normalize(k): v for k, v in rules.items()}

    def select(self, activity: Activity) -> str | None:
        text = self._normalize(activity.text or "")
        for keyword, skill_id in self._rules.items():
            if keyword in text:
                return skill_id
        return None

    @property
    def skill_ids(self) -> list[str]:
        return list(dict.fromkeys(self._rules.values()))

    def _normalize(self, text: str) -> str:
        return text if self._case_sensitive else text.casefold()
