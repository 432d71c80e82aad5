"""
Application services layer.

Turn management, landing resolution, the ownership ledger and game
lifecycle, each running inside a caller-owned transaction.
"""

from .game_service import GameService, GameView

__all__ = ["GameService", "GameView"]
