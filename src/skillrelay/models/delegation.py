"""Per-conversation delegation state.

Stored as two properties of the conversation's state record so activation
can write the active skill and the skill conversation ID as separate steps.
Readers go through :func:`get_delegation_state`, which rejects a record
holding only one of the two.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ValidationError, model_validator

from skillrelay.core.errors import StateStoreError

if TYPE_CHECKING:
    from skillrelay.core.turn_context import TurnContext
    from skillrelay.store.conversation_state import ConversationState

ACTIVE_SKILL_PROPERTY = "RootBot.ActiveSkillProperty"
SKILL_CONVERSATION_ID_PROPERTY = "RootBot.SkillConversationIdProperty"


class DelegationState(BaseModel):
    """Which skill (if any) owns the conversation.

    Both fields set means **Delegating**; both empty means **Idle**.
    """

    active_skill: str | None = None
    skill_conversation_id: str | None = None

    @model_validator(mode="after")
    def _both_or_neither(self) -> DelegationState:
        if bool(self.active_skill) != bool(self.skill_conversation_id):
            msg = (
                "active_skill and skill_conversation_id must be set together "
                f"(active_skill={self.active_skill!r}, "
                f"skill_conversation_id={self.skill_conversation_id!r})"
            )
            raise ValueError(msg)
        return self

    @property
    def is_delegating(self) -> bool:
        return self.active_skill is not None


async def get_delegation_state(
    state: ConversationState, context: TurnContext
) -> DelegationState:
    """Read and validate the delegation state for the current conversation.

    Raises:
        StateStoreError: If the record holds only one of the two fields.
    """
    active_skill = await state.get(context, ACTIVE_SKILL_PROPERTY) or None
    skill_conversation_id = await state.get(context, SKILL_CONVERSATION_ID_PROPERTY) or None
    try:
        return DelegationState(
            active_skill=active_skill,
            skill_conversation_id=skill_conversation_id,
        )
    except ValidationError as exc:
        msg = f"Inconsistent delegation state: {exc.errors()[0]['msg']}"
        raise StateStoreError(msg) from exc


async def set_active_skill(state: ConversationState, context: TurnContext, skill_id: str) -> None:
    await state.set(context, ACTIVE_SKILL_PROPERTY, skill_id)


async def set_skill_conversation_id(
    state: ConversationState, context: TurnContext, skill_conversation_id: str
) -> None:
    await state.set(context, SKILL_CONVERSATION_ID_PROPERTY, skill_conversation_id)


async def clear_delegation_state(state: ConversationState, context: TurnContext) -> None:
    """Return the conversation to Idle (in memory; the caller saves)."""
    await state.delete_property(context, ACTIVE_SKILL_PROPERTY)
    await state.delete_property(context, SKILL_CONVERSATION_ID_PROPERTY)
