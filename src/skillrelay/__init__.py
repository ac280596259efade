"""skillrelay - Conversation routing core for a root bot that delegates to skills."""

from skillrelay._version import __version__
from skillrelay.bot import ActivityHandler, KeywordSkillSelector, RootBot, SkillSelector
from skillrelay.core.adapter import RootAdapter, TurnCallback, TurnErrorCallback
from skillrelay.core.error_handler import TurnErrorHandler
from skillrelay.core.errors import (
    ConfigurationError,
    SkillInvocationError,
    SkillRelayError,
    StateStoreError,
    UnknownMappingError,
)
from skillrelay.core.locks import ConversationLockManager, InMemoryLockManager
from skillrelay.core.sender import ActivitySender, MockActivitySender
from skillrelay.core.turn_context import TurnContext
from skillrelay.models.activity import (
    Activity,
    ChannelAccount,
    ConversationAccount,
    ConversationReference,
    ResourceResponse,
)
from skillrelay.models.delegation import DelegationState, get_delegation_state
from skillrelay.models.enums import ActivityType, Channels, EndOfConversationCode, InputHint
from skillrelay.models.skill import (
    BotFrameworkSkill,
    InvocationResult,
    SkillConversationIdFactoryOptions,
    SkillConversationReference,
)
from skillrelay.skills import (
    AnonymousCredentialProvider,
    CredentialProvider,
    RootBotConfig,
    SkillConversationIdFactory,
    SkillHandler,
    SkillHttpClient,
    SkillRegistry,
    SkillsConfiguration,
    StaticTokenCredentialProvider,
    StorageSkillConversationIdFactory,
)
from skillrelay.store.base import Storage
from skillrelay.store.conversation_state import ConversationState
from skillrelay.store.memory import InMemoryStorage
from skillrelay.telemetry import (
    ConsoleTelemetryProvider,
    MockTelemetryProvider,
    NoopTelemetryProvider,
    TelemetryProvider,
)

__all__ = [
    "__version__",
    # Bot
    "ActivityHandler",
    "KeywordSkillSelector",
    "RootBot",
    "SkillSelector",
    # Turn pipeline
    "RootAdapter",
    "TurnCallback",
    "TurnContext",
    "TurnErrorCallback",
    "TurnErrorHandler",
    "ActivitySender",
    "MockActivitySender",
    "ConversationLockManager",
    "InMemoryLockManager",
    # Errors
    "ConfigurationError",
    "SkillInvocationError",
    "SkillRelayError",
    "StateStoreError",
    "UnknownMappingError",
    # Models
    "Activity",
    "ActivityType",
    "BotFrameworkSkill",
    "ChannelAccount",
    "Channels",
    "ConversationAccount",
    "ConversationReference",
    "DelegationState",
    "EndOfConversationCode",
    "InputHint",
    "InvocationResult",
    "ResourceResponse",
    "SkillConversationIdFactoryOptions",
    "SkillConversationReference",
    "get_delegation_state",
    # Skills
    "AnonymousCredentialProvider",
    "CredentialProvider",
    "RootBotConfig",
    "SkillConversationIdFactory",
    "SkillHandler",
    "SkillHttpClient",
    "SkillRegistry",
    "SkillsConfiguration",
    "StaticTokenCredentialProvider",
    "StorageSkillConversationIdFactory",
    # State
    "ConversationState",
    "InMemoryStorage",
    "Storage",
    # Telemetry
    "ConsoleTelemetryProvider",
    "MockTelemetryProvider",
    "NoopTelemetryProvider",
    "TelemetryProvider",
]
