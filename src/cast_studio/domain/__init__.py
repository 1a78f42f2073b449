"""Domain models and ports for character and story records."""

from cast_studio.domain.models import (
    ALIGNMENTS,
    PERSONALITIES,
    RACES,
    RELATION_TYPES,
    BoardNode,
    Character,
    ChatMessage,
    ChatSession,
    StoryProject,
    StoryRelationship,
)
from cast_studio.domain.ports import EntityStore, LegacyBlobStore, TextGenerator

__all__ = [
    "ALIGNMENTS",
    "PERSONALITIES",
    "RACES",
    "RELATION_TYPES",
    "BoardNode",
    "Character",
    "ChatMessage",
    "ChatSession",
    "EntityStore",
    "LegacyBlobStore",
    "StoryProject",
    "StoryRelationship",
    "TextGenerator",
]
