"""Turn pipeline: builds a TurnContext, runs bot logic, routes failures."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from skillrelay.core.locks import ConversationLockManager, InMemoryLockManager
from skillrelay.core.sender import ActivitySender
from skillrelay.core.turn_context import TurnContext
from skillrelay.models.activity import Activity, ConversationReference, ResourceResponse
from skillrelay.models.enums import ActivityType, Channels
from skillrelay.telemetry.base import Attr, SpanKind, TelemetryProvider
from skillrelay.telemetry.noop import NoopTelemetryProvider

logger = logging.getLogger("skillrelay.adapter")

TurnCallback = Callable[[TurnContext], Awaitable[None]]
TurnErrorCallback = Callable[[TurnContext, Exception], Awaitable[None]]

_CONTINUE_CONVERSATION = "ContinueConversation"


class RootAdapter:
    """Runs bot turns for inbound activities.

    Turns arriving through :meth:`process_activity` are serialized per
    conversation. :meth:`continue_conversation` runs a turn without taking
    the lock: it is used for skill callbacks, which arrive while the turn
    that forwarded to the skill is still awaiting the skill's response.

    Any exception escaping the bot logic is passed to ``on_turn_error``.
    Without a handler the exception propagates to the caller.
    """

    def __init__(
        self,
        sender: ActivitySender,
        *,
        lock_manager: ConversationLockManager | None = None,
        telemetry: TelemetryProvider | None = None,
        on_turn_error: TurnErrorCallback | None = None,
    ) -> None:
        self._sender = sender
        self._locks = lock_manager or InMemoryLockManager()
        self._telemetry = telemetry or NoopTelemetryProvider()
        self.on_turn_error = on_turn_error

    @property
    def telemetry(self) -> TelemetryProvider:
        return self._telemetry

    async def process_activity(
        self,
        activity: Activity | dict[str, Any],
        logic: TurnCallback,
    ) -> None:
        """Run *logic* for an inbound activity (or its wire dict)."""
        if not isinstance(activity, Activity):
            activity = Activity.model_validate(activity)
        if not activity.conversation_id:
            raise ValueError("Inbound activity has no conversation id")

        async with self._locks.locked(activity.conversation_id):
            await self._run_pipeline(TurnContext(self, activity), logic)

    async def continue_conversation(
        self,
        reference: ConversationReference,
        logic: TurnCallback,
        *,
        activity: Activity | None = None,
    ) -> None:
        """Run *logic* as a turn in the conversation *reference* points to.

        When *activity* is given it is re-addressed to the conversation as
        if the user had sent it; otherwise a ``ContinueConversation`` event
        is synthesized.
        """
        template = activity or Activity(type=ActivityType.EVENT, name=_CONTINUE_CONVERSATION)
        incoming = template.apply_conversation_reference(reference, is_incoming=True)
        await self._run_pipeline(TurnContext(self, incoming), logic)

    async def send_activities(
        self,
        context: TurnContext,
        activities: list[Activity],
    ) -> list[ResourceResponse]:
        """Deliver *activities* through the channel sender.

        Trace activities only reach the emulator channel; on every other
        channel they are logged instead.
        """
        deliverable: list[Activity] = []
        for activity in activities:
            if activity.type == ActivityType.TRACE and activity.channel_id != Channels.EMULATOR:
                logger.debug(
                    "Trace %s: %s",
                    activity.name,
                    activity.value,
                    extra={"conversation_id": activity.conversation_id},
                )
                continue
            deliverable.append(activity)

        if not deliverable:
            return []
        return await self._sender.send_activities(
            context.activity.get_conversation_reference(), deliverable
        )

    async def _run_pipeline(self, context: TurnContext, logic: TurnCallback) -> None:
        activity = context.activity
        with self._telemetry.span(
            SpanKind.TURN,
            f"turn.{activity.type}",
            conversation_id=activity.conversation_id,
            channel_id=activity.channel_id,
            attributes={Attr.ACTIVITY_TYPE: str(activity.type)},
        ) as span_id:
            try:
                await logic(context)
            except Exception as exc:
                if self.on_turn_error is None:
                    raise
                self._telemetry.set_attribute(span_id, Attr.ERROR_TYPE, type(exc).__name__)
                logger.error(
                    "Unhandled error during turn: %s",
                    exc,
                    exc_info=exc,
                    extra={
                        "conversation_id": activity.conversation_id,
                        "activity_type": activity.type,
                    },
                )
                await self.on_turn_error(context, exc)

    async def close(self) -> None:
        await self._sender.close()
        self._telemetry.close()
