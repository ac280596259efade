"""Catalog of the skills a root bot may delegate to."""

from __future__ import annotations

import logging

from skillrelay.core.errors import ConfigurationError
from skillrelay.models.skill import BotFrameworkSkill
from skillrelay.skills.config import SkillsConfiguration

logger = logging.getLogger("skillrelay.skills")


class SkillRegistry:
    """Read-only lookup of configured skills.

    Unknown skill IDs are a configuration problem, not a per-turn
    condition: validate everything the bot will ask for at startup with
    :meth:`require`.
    """

    def __init__(self, config: SkillsConfiguration) -> None:
        self._config = config
        logger.info(
            "Loaded %d skill(s): %s",
            len(config.skills),
            ", ".join(config.skills) or "<none>",
        )

    @property
    def skill_host_endpoint(self) -> str:
        """Callback base URL skills use to reach the root."""
        return self._config.skill_host_endpoint

    @property
    def skill_ids(self) -> list[str]:
        return list(self._config.skills)

    def find(self, skill_id: str) -> BotFrameworkSkill | None:
        return self._config.skills.get(skill_id)

    def get(self, skill_id: str) -> BotFrameworkSkill:
        """Return the skill registered as *skill_id*.

        Raises:
            ConfigurationError: If no such skill is registered.
        """
        skill = self._config.skills.get(skill_id)
        if skill is None:
            raise ConfigurationError(f"Skill {skill_id!r} is not registered")
        return skill

    def require(self, *skill_ids: str) -> None:
        """Fail fast if any of *skill_ids* is not registered."""
        missing = [s for s in skill_ids if s not in self._config.skills]
        if missing:
            raise ConfigurationError(f"Unregistered skill id(s): {', '.join(missing)}")

    def __contains__(self, skill_id: object) -> bool:
        return skill_id in self._config.skills

    def __len__(self) -> int:
        return len(self._config.skills)
