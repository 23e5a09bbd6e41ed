"""
Bracket services for BracketTrack
Generation, advancement, flexible slot assignment and bracket views
"""

from .generator import generate_bracket, generate_matches
from .advancement import record_winner, AdvancementResult
from .bracket_view import get_bracket, bracket_rounds, bracket_summary
from .flexible import FlexibleSlotAssignor, load_flexible_bracket, save_flexible_bracket

__all__ = [
    'generate_bracket',
    'generate_matches',
    'record_winner',
    'AdvancementResult',
    'get_bracket',
    'bracket_rounds',
    'bracket_summary',
    'FlexibleSlotAssignor',
    'load_flexible_bracket',
    'save_flexible_bracket',
]
