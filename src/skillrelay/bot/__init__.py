"""Bot turn logic."""

from skillrelay.bot.activity_handler import ActivityHandler
from skillrelay.bot.root_bot import RootBot
from skillrelay.bot.selection import KeywordSkillSelector, SkillSelector

__all__ = [
    "ActivityHandler",
    "KeywordSkillSelector",
    "RootBot",
    "SkillSelector",
]
