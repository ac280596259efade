"""Per-turn context handed to bot logic."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from skillrelay.models.activity import Activity, ResourceResponse
from skillrelay.models.enums import ActivityType

if TYPE_CHECKING:
    from skillrelay.core.adapter import RootAdapter


class TurnContext:
    """Holds the inbound activity and per-turn state for one turn.

    ``turn_state`` is a scratch dict that lives exactly as long as the
    turn; ``ConversationState`` caches its loaded record there.
    """

    def __init__(self, adapter: RootAdapter, activity: Activity) -> None:
        self.adapter = adapter
        self.activity = activity
        self.turn_state: dict[str, Any] = {}
        self.responded = False

    async def send_activity(
        self,
        activity_or_text: Activity | str,
        *,
        input_hint: str | None = None,
    ) -> ResourceResponse | None:
        """Send one activity (or plain text) to the user."""
        if isinstance(activity_or_text, str):
            activity = Activity.message(activity_or_text, input_hint=input_hint)
        else:
            activity = activity_or_text
        responses = await self.send_activities([activity])
        return responses[0] if responses else None

    async def send_activities(self, activities: list[Activity]) -> list[ResourceResponse]:
        """Address *activities* to this conversation and deliver them."""
        reference = self.activity.get_conversation_reference()
        outgoing = [a.apply_conversation_reference(reference) for a in activities]
        responses = await self.adapter.send_activities(self, outgoing)
        if any(a.type != ActivityType.TRACE for a in outgoing):
            self.responded = True
        return responses

    async def send_trace_activity(
        self,
        name: str,
        value: Any = None,
        *,
        value_type: str | None = None,
        label: str | None = None,
    ) -> ResourceResponse | None:
        """Send an operator-facing trace activity."""
        trace = Activity.trace(name, value, value_type=value_type, label=label)
        return await self.send_activity(trace)
