"""Outbound delivery of activities to the user's channel."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod

from skillrelay.models.activity import Activity, ConversationReference, ResourceResponse


class ActivitySender(ABC):
    """Transport that delivers bot activities to a user conversation.

    Implemented by the host's HTTP/channel integration; the routing core
    only calls ``send_activities``.
    """

    @abstractmethod
    async def send_activities(
        self,
        reference: ConversationReference,
        activities: list[Activity],
    ) -> list[ResourceResponse]:
        """Deliver *activities* to the conversation in *reference*.

        Returns one ``ResourceResponse`` per delivered activity.
        """
        ...

    async def close(self) -> None:  # noqa: B027
        """Release resources. Override in subclasses that hold connections."""


class MockActivitySender(ActivitySender):
    """Records every delivered activity, keyed by conversation ID."""

    def __init__(self) -> None:
        self.sent: list[Activity] = []

    async def send_activities(
        self,
        reference: ConversationReference,
        activities: list[Activity],
    ) -> list[ResourceResponse]:
        self.sent.extend(activities)
        return [ResourceResponse(id=uuid.uuid4().hex) for _ in activities]

    def texts(self, conversation_id: str | None = None) -> list[str]:
        """Text of every sent message, optionally for one conversation."""
        return [
            a.text or ""
            for a in self.sent
            if a.type == "message"
            and (conversation_id is None or a.conversation_id == conversation_id)
        ]

    def reset(self) -> None:
        self.sent.clear()
