"""Mapping between root conversations and skill-facing conversation IDs."""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod

from pydantic import ValidationError

from skillrelay.core.errors import UnknownMappingError
from skillrelay.models.skill import SkillConversationIdFactoryOptions, SkillConversationReference
from skillrelay.store.base import ETAG_KEY, Storage

logger = logging.getLogger("skillrelay.skills.conversation_id")


class SkillConversationIdFactory(ABC):
    """Issues opaque skill conversation IDs and resolves them back.

    A root bot can be talking to several skills in several conversations
    at once; every callback a skill makes is addressed with the ID issued
    here, and :meth:`get_skill_conversation_reference` tells the root which
    of its conversations the callback belongs to.
    """

    @abstractmethod
    async def create_skill_conversation_id(
        self, options: SkillConversationIdFactoryOptions
    ) -> str:
        """Allocate a fresh ID for the (conversation, skill) pair in *options*."""
        ...

    @abstractmethod
    async def get_skill_conversation_reference(
        self, skill_conversation_id: str
    ) -> SkillConversationReference:
        """Resolve an ID issued by :meth:`create_skill_conversation_id`.

        Raises:
            UnknownMappingError: If the ID is unknown, stale, or forged.
        """
        ...

    @abstractmethod
    async def delete_conversation_reference(self, skill_conversation_id: str) -> None:
        """Invalidate an ID. Deleting an unknown ID is a no-op."""
        ...


class StorageSkillConversationIdFactory(SkillConversationIdFactory):
    """Keeps mappings in a :class:`Storage`, keyed by random UUIDs.

    IDs are never derived from the root conversation, so they cannot be
    guessed and two pairs can never share one. Mappings live under their own
    key prefix, so the storage can be shared with :class:`ConversationState`
    without an ID ever resolving to a conversation record.
    """

    key_prefix = "skillConversations/"

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def get_storage_key(self, skill_conversation_id: str) -> str:
        try:
            uuid.UUID(skill_conversation_id)
        except ValueError:
            raise UnknownMappingError(skill_conversation_id) from None
        return f"{self.key_prefix}{skill_conversation_id}"

    async def create_skill_conversation_id(
        self, options: SkillConversationIdFactoryOptions
    ) -> str:
        reference = SkillConversationReference(
            conversation_reference=options.activity.get_conversation_reference(),
            oauth_scope=options.from_bot_oauth_scope,
            skill_id=options.bot_framework_skill.id,
        )

        skill_conversation_id = str(uuid.uuid4())
        while await self._storage.read([self.get_storage_key(skill_conversation_id)]):
            skill_conversation_id = str(uuid.uuid4())

        await self._storage.write(
            {
                self.get_storage_key(skill_conversation_id): reference.model_dump(
                    mode="json", by_alias=True
                )
            }
        )
        logger.debug(
            "Created skill conversation id",
            extra={
                "conversation_id": reference.root_conversation_id,
                "skill_id": reference.skill_id,
                "skill_conversation_id": skill_conversation_id,
            },
        )
        return skill_conversation_id

    async def get_skill_conversation_reference(
        self, skill_conversation_id: str
    ) -> SkillConversationReference:
        key = self.get_storage_key(skill_conversation_id)
        items = await self._storage.read([key])
        item = items.get(key)
        if item is None:
            raise UnknownMappingError(skill_conversation_id)
        item = {k: v for k, v in item.items() if k != ETAG_KEY}
        try:
            return SkillConversationReference.model_validate(item)
        except ValidationError as exc:
            logger.warning(
                "Stored skill conversation mapping is malformed",
                extra={
                    "skill_conversation_id": skill_conversation_id,
                    "error_count": exc.error_count(),
                },
            )
            raise UnknownMappingError(skill_conversation_id) from exc

    async def delete_conversation_reference(self, skill_conversation_id: str) -> None:
        try:
            key = self.get_storage_key(skill_conversation_id)
        except UnknownMappingError:
            return
        await self._storage.delete([key])
        logger.debug(
            "Deleted skill conversation id",
            extra={"skill_conversation_id": skill_conversation_id},
        )
