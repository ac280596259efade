"""Root bot: answers locally or routes the conversation to an active skill."""

from __future__ import annotations

import json
import logging

from skillrelay.bot.activity_handler import ActivityHandler
from skillrelay.bot.selection import KeywordSkillSelector, SkillSelector
from skillrelay.core.turn_context import TurnContext
from skillrelay.models.activity import ChannelAccount
from skillrelay.models.delegation import (
    SKILL_CONVERSATION_ID_PROPERTY,
    clear_delegation_state,
    get_delegation_state,
    set_active_skill,
    set_skill_conversation_id,
)
from skillrelay.models.enums import ActivityType
from skillrelay.models.skill import BotFrameworkSkill, SkillConversationIdFactoryOptions
from skillrelay.skills.client import SkillHttpClient
from skillrelay.skills.config import RootBotConfig
from skillrelay.skills.conversation_id import SkillConversationIdFactory
from skillrelay.skills.registry import SkillRegistry
from skillrelay.store.conversation_state import ConversationState

logger = logging.getLogger("skillrelay.bot")

DEFAULT_SKILL_ID = "EchoSkillBot"

CONNECTING_TEXT = "Got it, connecting you to the skill..."
LOCAL_REPLY_TEXT = "Me no nothin'. Say \"skill\" and I'll patch you through"
BACK_IN_ROOT_TEXT = "Back in the root bot. Say \"skill\" and I'll patch you through"
WELCOME_TEXT = "Hello and welcome!"


class RootBot(ActivityHandler):
    """Routes each turn either to local handling or to the active skill.

    While a skill is active every activity except ``endOfConversation`` is
    forwarded to it untouched. An ``endOfConversation`` returns the
    conversation to local handling.

    State is force-saved before every forward: the skill may call back
    into this conversation before the forward returns, and that callback
    turn reads state from storage.
    """

    def __init__(
        self,
        conversation_state: ConversationState,
        registry: SkillRegistry,
        skill_client: SkillHttpClient,
        conversation_id_factory: SkillConversationIdFactory,
        bot_config: RootBotConfig,
        *,
        selector: SkillSelector | None = None,
    ) -> None:
        self._conversation_state = conversation_state
        self._registry = registry
        self._skill_client = skill_client
        self._conversation_id_factory = conversation_id_factory
        self._bot_config = bot_config
        self._selector = selector or KeywordSkillSelector({"skill": DEFAULT_SKILL_ID})
        self._registry.require(*self._selector.skill_ids)

    async def on_turn(self, context: TurnContext) -> None:
        if context.activity.type != ActivityType.END_OF_CONVERSATION:
            delegation = await get_delegation_state(self._conversation_state, context)
            if delegation.is_delegating:
                assert delegation.active_skill is not None
                assert delegation.skill_conversation_id is not None
                skill = self._registry.get(delegation.active_skill)
                await self._send_to_skill(context, skill, delegation.skill_conversation_id)
                return

        await super().on_turn(context)

        await self._conversation_state.save_changes(context, force=False)

    async def on_message_activity(self, context: TurnContext) -> None:
        skill_id = self._selector.select(context.activity)
        if skill_id is not None:
            skill = self._registry.get(skill_id)
            await context.send_activity(CONNECTING_TEXT)

            await set_active_skill(self._conversation_state, context, skill.id)

            options = SkillConversationIdFactoryOptions(
                from_bot_oauth_scope=self._bot_config.oauth_scope,
                from_bot_id=self._bot_config.app_id,
                activity=context.activity,
                bot_framework_skill=skill,
            )
            factory = self._conversation_id_factory
            skill_conversation_id = await factory.create_skill_conversation_id(options)
            await set_skill_conversation_id(
                self._conversation_state, context, skill_conversation_id
            )

            logger.info(
                "Delegating conversation to skill %s",
                skill.id,
                extra={
                    "conversation_id": context.activity.conversation_id,
                    "skill_id": skill.id,
                    "skill_conversation_id": skill_conversation_id,
                },
            )
            await self._send_to_skill(context, skill, skill_conversation_id)
            return

        await context.send_activity(LOCAL_REPLY_TEXT)

        await self._conversation_state.save_changes(context, force=True)

    async def on_end_of_conversation_activity(self, context: TurnContext) -> None:
        activity = context.activity
        skill_conversation_id = await self._conversation_state.get(
            context, SKILL_CONVERSATION_ID_PROPERTY
        )
        await clear_delegation_state(self._conversation_state, context)
        if skill_conversation_id:
            await self._conversation_id_factory.delete_conversation_reference(
                skill_conversation_id
            )

        logger.info(
            "Skill ended the conversation (code=%s)",
            activity.code,
            extra={"conversation_id": activity.conversation_id},
        )

        message = f"Received {ActivityType.END_OF_CONVERSATION}.\n\nCode: {activity.code}"
        if activity.text and activity.text.strip():
            message += f"\n\nText: {activity.text}"
        if activity.value is not None:
            message += f"\n\nValue: {json.dumps(activity.value, default=str)}"
        await context.send_activity(message)

        await context.send_activity(BACK_IN_ROOT_TEXT)

        await self._conversation_state.save_changes(context)

    async def on_members_added_activity(
        self, members_added: list[ChannelAccount], context: TurnContext
    ) -> None:
        recipient = context.activity.recipient
        for member in members_added:
            if recipient is None or member.id != recipient.id:
                await context.send_activity(WELCOME_TEXT)

    async def _send_to_skill(
        self,
        context: TurnContext,
        skill: BotFrameworkSkill,
        skill_conversation_id: str,
    ) -> None:
        await self._conversation_state.save_changes(context, force=True)

        await self._skill_client.post_activity(
            self._bot_config.app_id,
            skill,
            self._registry.skill_host_endpoint,
            skill_conversation_id,
            context.activity,
        )
