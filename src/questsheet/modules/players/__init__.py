"""QuestSheet Players Module - player registry reconciled against the player tab."""

from questsheet.modules.players.repository import PlayerIndex, PlayerRepository
from questsheet.modules.players.router import router
from questsheet.modules.players.service import PlayerRegistry

__all__ = ["router", "PlayerIndex", "PlayerRegistry", "PlayerRepository"]
