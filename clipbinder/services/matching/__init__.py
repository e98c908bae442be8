"""Matching engine for local assets."""

from clipbinder.services.matching.engine import MatchingEngine, compute_stats, match, recommend

__all__ = ["MatchingEngine", "compute_stats", "match", "recommend"]
