"""Handles activities a skill sends back to the root's skill host endpoint."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from skillrelay.core.errors import UnknownMappingError
from skillrelay.core.turn_context import TurnContext
from skillrelay.models.activity import Activity, ResourceResponse
from skillrelay.models.enums import ActivityType
from skillrelay.skills.conversation_id import SkillConversationIdFactory
from skillrelay.telemetry.base import Attr, SpanKind

if TYPE_CHECKING:
    from skillrelay.bot.activity_handler import ActivityHandler
    from skillrelay.core.adapter import RootAdapter

logger = logging.getLogger("skillrelay.skills.handler")

# Skill activities that run a root bot turn instead of being relayed to the user.
_TURN_ACTIVITY_TYPES = (ActivityType.END_OF_CONVERSATION, ActivityType.EVENT)


class SkillHandler:
    """Maps skill callbacks onto root conversations.

    Every callback is addressed with a skill conversation ID. The handler
    resolves it to the root conversation it was issued for, then either
    runs a bot turn (``endOfConversation`` and ``event`` activities) or
    relays the activity to the user. Callbacks with an unknown ID are
    rejected with :class:`UnknownMappingError` and touch no state.

    Callback turns do not take the conversation lock: the turn that
    forwarded to the skill is usually still awaiting the skill's response.
    """

    def __init__(
        self,
        adapter: RootAdapter,
        bot: ActivityHandler,
        conversation_id_factory: SkillConversationIdFactory,
    ) -> None:
        self._adapter = adapter
        self._bot = bot
        self._conversation_id_factory = conversation_id_factory

    async def on_send_to_conversation(
        self,
        skill_conversation_id: str,
        activity: Activity | dict[str, Any],
    ) -> ResourceResponse:
        """Handle ``POST v3/conversations/{conversationId}/activities`` from a skill."""
        return await self._process_activity(skill_conversation_id, None, activity)

    async def on_reply_to_activity(
        self,
        skill_conversation_id: str,
        activity_id: str,
        activity: Activity | dict[str, Any],
    ) -> ResourceResponse:
        """Handle ``POST v3/conversations/{conversationId}/activities/{activityId}``."""
        return await self._process_activity(skill_conversation_id, activity_id, activity)

    async def _process_activity(
        self,
        skill_conversation_id: str,
        reply_to_activity_id: str | None,
        activity: Activity | dict[str, Any],
    ) -> ResourceResponse:
        if not isinstance(activity, Activity):
            activity = Activity.model_validate(activity)

        try:
            skill_reference = await self._conversation_id_factory.get_skill_conversation_reference(
                skill_conversation_id
            )
        except UnknownMappingError:
            logger.warning(
                "Rejected skill callback for unknown conversation id",
                extra={"skill_conversation_id": skill_conversation_id},
            )
            raise

        reference = skill_reference.conversation_reference
        telemetry = self._adapter.telemetry
        with telemetry.span(
            SpanKind.SKILL_CALLBACK,
            f"skill.callback.{activity.type}",
            conversation_id=skill_reference.root_conversation_id,
            channel_id=reference.channel_id,
            attributes={
                Attr.SKILL_ID: skill_reference.skill_id,
                Attr.SKILL_CONVERSATION_ID: skill_conversation_id,
                Attr.ACTIVITY_TYPE: str(activity.type),
            },
        ):
            if activity.type in _TURN_ACTIVITY_TYPES:
                await self._adapter.continue_conversation(
                    reference, self._bot.on_turn, activity=activity
                )
                return ResourceResponse(id=uuid.uuid4().hex)

            resource = ResourceResponse(id=uuid.uuid4().hex)

            async def _relay(context: TurnContext) -> None:
                nonlocal resource
                outgoing = activity.apply_conversation_reference(reference)
                if reply_to_activity_id:
                    outgoing = outgoing.model_copy(update={"reply_to_id": reply_to_activity_id})
                responses = await context.adapter.send_activities(context, [outgoing])
                if responses:
                    resource = responses[0]

            await self._adapter.continue_conversation(reference, _relay)
            return resource
