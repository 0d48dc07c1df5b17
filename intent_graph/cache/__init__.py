"""
Cache Module
Generation-keyed memoization of graph statistics
"""

from .score_cache import ScoreCache

__all__ = [
    "ScoreCache",
]
