from santa_draw.services.assignment import AssignmentError, ExclusionGraph, generate_cycle
from santa_draw.services.errors import ErrorKind, GameError, Outcome

__all__ = [
    "AssignmentError",
    "ErrorKind",
    "ExclusionGraph",
    "GameError",
    "Outcome",
    "generate_cycle",
]
