"""Skill, invocation and skill-conversation models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from skillrelay.models.activity import Activity, ConversationReference


class BotFrameworkSkill(BaseModel):
    """A registered remote skill. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    id: str
    app_id: str = ""
    skill_endpoint: str


class InvocationResult(BaseModel):
    """Normalized response of an outbound skill call."""

    status: int
    body: Any = None

    @property
    def is_successful(self) -> bool:
        return 200 <= self.status <= 299


class SkillConversationIdFactoryOptions(BaseModel):
    """Caller context used when allocating a skill conversation ID."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    from_bot_oauth_scope: str | None = None
    from_bot_id: str | None = None
    activity: Activity
    bot_framework_skill: BotFrameworkSkill


class SkillConversationReference(BaseModel):
    """What a skill conversation ID maps back to on the root side."""

    conversation_reference: ConversationReference
    oauth_scope: str | None = None
    skill_id: str

    @property
    def root_conversation_id(self) -> str:
        conversation = self.conversation_reference.conversation
        return conversation.id if conversation is not None else ""
