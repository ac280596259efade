"""Skill registry, conversation ID mapping and outbound forwarding."""

from skillrelay.skills.auth import (
    AnonymousCredentialProvider,
    CredentialProvider,
    StaticTokenCredentialProvider,
)
from skillrelay.skills.client import SkillHttpClient
from skillrelay.skills.config import RootBotConfig, SkillsConfiguration
from skillrelay.skills.conversation_id import (
    SkillConversationIdFactory,
    StorageSkillConversationIdFactory,
)
from skillrelay.skills.handler import SkillHandler
from skillrelay.skills.registry import SkillRegistry

__all__ = [
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
]
