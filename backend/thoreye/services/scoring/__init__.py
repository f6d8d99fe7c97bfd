"""ThorEye Audit Engine - Score Calculator"""
from .calculator import ScoreCalculator, compute_score, find_unresolved_answers, round_half_up

__all__ = [
    "ScoreCalculator",
    "compute_score",
    "find_unresolved_answers",
    "round_half_up",
]
