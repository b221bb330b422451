"""
Decision types.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional


class DecisionSource(str, Enum):
    """Which path produced a decision."""
    NORMAL = "normal"
    EMERGENCY = "emergency"
    BURST = "burst"


@dataclass(frozen=True)
class Decision:
    """The single committed output of a scanning session."""
    text: str
    score: float
    elapsed_ms: float
    source: DecisionSource
    session_id: Optional[str] = None
    committed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["source"] = self.source.value
        data["committed_at"] = self.committed_at.isoformat()
        return data
