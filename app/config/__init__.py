"""Configuration for DropQuest."""

from app.config.game import GameConfig, get_game_config
from app.config.settings import Settings, get_settings

__all__ = ["GameConfig", "Settings", "get_game_config", "get_settings"]
