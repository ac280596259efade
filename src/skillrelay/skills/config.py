"""Root bot and skill configuration."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator, model_validator

from skillrelay.core.errors import ConfigurationError
from skillrelay.models.skill import BotFrameworkSkill


def _validate_url(value: str, field_name: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError(f"{field_name} must be an http(s) URL with a host, got {value!r}")
    return value


class RootBotConfig(BaseModel):
    """Identity of the root bot when calling skills.

    ``app_id`` may be empty for local development against the emulator,
    in which case outbound calls are made without credentials.
    """

    app_id: str = ""
    app_password: SecretStr | None = None
    oauth_scope: str | None = None

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> RootBotConfig:
        """Build from appsettings keys (``MicrosoftAppId``/``MicrosoftAppPassword``)."""
        return cls(
            app_id=settings.get("MicrosoftAppId", settings.get("app_id", "")) or "",
            app_password=settings.get("MicrosoftAppPassword", settings.get("app_password")),
            oauth_scope=settings.get("MicrosoftAppOAuthScope", settings.get("oauth_scope")),
        )


class SkillsConfiguration(BaseModel):
    """Known skills plus the callback endpoint every skill uses to reach the root.

    Accepts either the appsettings shape::

        {
            "SkillHostEndpoint": "http://localhost:3978/api/skills/",
            "BotFrameworkSkills": [
                {"Id": "EchoSkillBot", "AppId": "...", "SkillEndpoint": "http://..."}
            ]
        }

    or snake_case keys via the constructor.
    """

    skill_host_endpoint: str
    skills: dict[str, BotFrameworkSkill] = Field(default_factory=dict)

    @field_validator("skill_host_endpoint")
    @classmethod
    def validate_skill_host_endpoint(cls, v: str) -> str:
        return _validate_url(v, "skill_host_endpoint")

    @model_validator(mode="after")
    def _validate_skills(self) -> SkillsConfiguration:
        for key, skill in self.skills.items():
            if key != skill.id:
                raise ValueError(f"Skill registered as {key!r} has id {skill.id!r}")
            _validate_url(skill.skill_endpoint, f"skills[{key!r}].skill_endpoint")
        return self

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> SkillsConfiguration:
        """Parse configuration, raising :class:`ConfigurationError` on any problem."""
        host = settings.get("SkillHostEndpoint", settings.get("skill_host_endpoint"))
        if not host:
            raise ConfigurationError("SkillHostEndpoint is not configured")

        raw_skills = settings.get("BotFrameworkSkills", settings.get("skills", []))
        if isinstance(raw_skills, Mapping):
            raw_skills = list(raw_skills.values())

        skills: dict[str, BotFrameworkSkill] = {}
        try:
            for raw in raw_skills:
                skill = BotFrameworkSkill(
                    id=raw.get("Id", raw.get("id")),
                    app_id=raw.get("AppId", raw.get("app_id", "")) or "",
                    skill_endpoint=raw.get("SkillEndpoint", raw.get("skill_endpoint")),
                )
                if skill.id in skills:
                    raise ConfigurationError(f"Duplicate skill id: {skill.id!r}")
                skills[skill.id] = skill
            return cls(skill_host_endpoint=host, skills=skills)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid skills configuration: {exc}") from exc
