"""
Scheduling module.

Contains the priority ranker used for dequeue ordering.
"""

from gengate.scheduling.ranker import PriorityRanker, RankerConfig, RankingMetadata

__all__ = ["PriorityRanker", "RankerConfig", "RankingMetadata"]
