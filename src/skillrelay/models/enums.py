"""All string enums for skillrelay."""

from __future__ import annotations

from enum import StrEnum, unique


@unique
class ActivityType(StrEnum):
    MESSAGE = "message"
    CONVERSATION_UPDATE = "conversationUpdate"
    END_OF_CONVERSATION = "endOfConversation"
    EVENT = "event"
    INVOKE = "invoke"
    TRACE = "trace"
    TYPING = "typing"


@unique
class EndOfConversationCode(StrEnum):
    UNKNOWN = "unknown"
    COMPLETED_SUCCESSFULLY = "completedSuccessfully"
    USER_CANCELLED = "userCancelled"
    BOT_TIMED_OUT = "botTimedOut"
    BOT_ISSUED_INVALID_MESSAGE = "botIssuedInvalidMessage"
    CHANNEL_FAILED = "channelFailed"
    SKILL_ERROR = "skillError"
    ROOT_SKILL_ERROR = "rootSkillError"


@unique
class InputHint(StrEnum):
    ACCEPTING_INPUT = "acceptingInput"
    IGNORING_INPUT = "ignoringInput"
    EXPECTING_INPUT = "expectingInput"


@unique
class Channels(StrEnum):
    EMULATOR = "emulator"
    MSTEAMS = "msteams"
    WEBCHAT = "webchat"
    DIRECTLINE = "directline"
    TEST = "test"
