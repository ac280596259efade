"""Activity models matching the Bot Framework wire schema.

Field names are snake_case in Python and camelCase on the wire. Unknown wire
fields are preserved (``extra="allow"``) so activities forwarded to a skill
arrive verbatim.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from skillrelay.models.enums import ActivityType, EndOfConversationCode, InputHint


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict with wire (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ChannelAccount(_WireModel):
    """A user or bot on a channel."""

    id: str = ""
    name: str | None = None
    role: str | None = None


class ConversationAccount(_WireModel):
    """A conversation on a channel."""

    id: str = ""
    name: str | None = None
    is_group: bool | None = None
    conversation_type: str | None = None
    tenant_id: str | None = None


class ConversationReference(_WireModel):
    """Enough information to address a conversation proactively."""

    activity_id: str | None = None
    user: ChannelAccount | None = None
    bot: ChannelAccount | None = None
    conversation: ConversationAccount | None = None
    channel_id: str | None = None
    locale: str | None = None
    service_url: str | None = None


class ResourceResponse(_WireModel):
    """Identifier of a resource created by a send operation."""

    id: str = ""


class Activity(_WireModel):
    """A single turn payload exchanged between user, root bot and skills."""

    type: str = ActivityType.MESSAGE
    id: str | None = None
    channel_id: str | None = None
    service_url: str | None = None
    from_property: ChannelAccount | None = Field(default=None, alias="from")
    recipient: ChannelAccount | None = None
    conversation: ConversationAccount | None = None
    text: str | None = None
    value: Any = None
    value_type: str | None = None
    code: str | None = None
    name: str | None = None
    label: str | None = None
    input_hint: str | None = None
    locale: str | None = None
    reply_to_id: str | None = None
    caller_id: str | None = None
    members_added: list[ChannelAccount] | None = None
    members_removed: list[ChannelAccount] | None = None
    relates_to: ConversationReference | None = None
    channel_data: Any = None

    # -- Factories --

    @classmethod
    def message(cls, text: str, *, input_hint: str | None = None) -> Activity:
        """Create an outgoing message activity."""
        return cls(
            type=ActivityType.MESSAGE,
            text=text,
            input_hint=input_hint or InputHint.ACCEPTING_INPUT,
        )

    @classmethod
    def end_of_conversation(
        cls, code: str = EndOfConversationCode.UNKNOWN, text: str | None = None
    ) -> Activity:
        """Create an ``endOfConversation`` activity with a termination code."""
        return cls(type=ActivityType.END_OF_CONVERSATION, code=code, text=text)

    @classmethod
    def trace(
        cls,
        name: str,
        value: Any = None,
        *,
        value_type: str | None = None,
        label: str | None = None,
    ) -> Activity:
        """Create a trace activity (operator-facing diagnostics only)."""
        return cls(
            type=ActivityType.TRACE,
            name=name,
            value=value,
            value_type=value_type or (type(value).__name__ if value is not None else None),
            label=label,
        )

    # -- Conversation references --

    @property
    def conversation_id(self) -> str:
        return self.conversation.id if self.conversation is not None else ""

    def get_conversation_reference(self) -> ConversationReference:
        """Build a reference addressing the conversation this activity came from."""
        return ConversationReference(
            activity_id=self.id,
            user=self.from_property,
            bot=self.recipient,
            conversation=self.conversation,
            channel_id=self.channel_id,
            locale=self.locale,
            service_url=self.service_url,
        )

    def apply_conversation_reference(
        self, reference: ConversationReference, *, is_incoming: bool = False
    ) -> Activity:
        """Return a copy addressed to *reference*.

        Outgoing activities flow from the bot to the user; incoming ones
        (``is_incoming=True``) are shaped as if the user had sent them.
        """
        update: dict[str, Any] = {
            "channel_id": reference.channel_id,
            "service_url": reference.service_url,
            "conversation": reference.conversation,
        }
        if reference.locale is not None:
            update["locale"] = reference.locale
        if is_incoming:
            update["from_property"] = reference.user
            update["recipient"] = reference.bot
            if reference.activity_id is not None:
                update["id"] = reference.activity_id
        else:
            update["from_property"] = reference.bot
            update["recipient"] = reference.user
            if reference.activity_id is not None:
                update["reply_to_id"] = reference.activity_id
        return self.model_copy(update=update, deep=True)
