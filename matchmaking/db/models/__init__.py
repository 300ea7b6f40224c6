from matchmaking.db.models.matches import Match
from matchmaking.db.models.tournament_participants import TournamentParticipant
from matchmaking.db.models.tournaments import Tournament

__all__ = ["Match", "Tournament", "TournamentParticipant"]
