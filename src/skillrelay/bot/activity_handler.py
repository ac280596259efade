"""Dispatches a turn to a per-activity-type handler method."""

from __future__ import annotations

from skillrelay.core.turn_context import TurnContext
from skillrelay.models.activity import ChannelAccount
from skillrelay.models.enums import ActivityType


class ActivityHandler:
    """Base class for bots.

    ``on_turn`` routes the inbound activity by type; subclasses override
    the ``on_*`` hooks they care about. Every hook defaults to a no-op.
    """

    async def on_turn(self, context: TurnContext) -> None:
        activity_type = context.activity.type
        if activity_type == ActivityType.MESSAGE:
            await self.on_message_activity(context)
        elif activity_type == ActivityType.CONVERSATION_UPDATE:
            await self.on_conversation_update_activity(context)
        elif activity_type == ActivityType.END_OF_CONVERSATION:
            await self.on_end_of_conversation_activity(context)
        elif activity_type == ActivityType.EVENT:
            await self.on_event_activity(context)
        else:
            await self.on_unrecognized_activity_type(context)

    async def on_message_activity(self, context: TurnContext) -> None:
        return

    async def on_conversation_update_activity(self, context: TurnContext) -> None:
        """Invoke ``on_members_added_activity`` when anyone besides the bot joined."""
        activity = context.activity
        recipient_id = activity.recipient.id if activity.recipient is not None else None
        members_added = activity.members_added or []
        if any(member.id != recipient_id for member in members_added):
            await self.on_members_added_activity(members_added, context)

    async def on_members_added_activity(
        self, members_added: list[ChannelAccount], context: TurnContext
    ) -> None:
        return

    async def on_end_of_conversation_activity(self, context: TurnContext) -> None:
        return

    async def on_event_activity(self, context: TurnContext) -> None:
        return

    async def on_unrecognized_activity_type(self, context: TurnContext) -> None:
        return
