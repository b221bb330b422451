"""
Stabilization Module

Turns a stream of per-frame OCR observations into one committed decision:
- Session state (aggregator, thresholds, best candidate)
- Adaptive threshold controller
- Periodic evaluator
- Burst majority voter
- Asyncio engine tying them together
"""

from steadytext.stabilization.decision import Decision, DecisionSource
from steadytext.stabilization.thresholds import (
    AdaptiveThresholdController,
    ThresholdStage,
    ThresholdState,
)
from steadytext.stabilization.session import (
    BestCandidateRecord,
    BestCandidateTracker,
    CandidateStatistics,
    ObservationAggregator,
    Session,
)
from steadytext.stabilization.evaluator import EvaluationResult, PeriodicEvaluator
from steadytext.stabilization.burst import BurstMajorityVoter, BurstResult
from steadytext.stabilization.engine import EngineStats, StabilizationEngine

__all__ = [
    "Decision",
    "DecisionSource",
    "AdaptiveThresholdController",
    "ThresholdStage",
    "ThresholdState",
    "BestCandidateRecord",
    "BestCandidateTracker",
    "CandidateStatistics",
    "ObservationAggregator",
    "Session",
    "EvaluationResult",
    "PeriodicEvaluator",
    "BurstMajorityVoter",
    "BurstResult",
    "EngineStats",
    "StabilizationEngine",
]
