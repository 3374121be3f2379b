"""
Translation Progress Data Class

Contains the TranslationProgress dataclass for tracking a module run.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class TranslationProgress:
    """Progress information for an ongoing module translation run."""
    module: str
    language: str
    language_name: str
    current_item: int
    total_items: int
    current_label: str = ""
    phase: str = "translating"       # "translating", "completed", "failed"
    estimated_time_remaining: Optional[float] = None

    @property
    def percent(self) -> float:
        if not self.total_items:
            return 100.0
        return round(self.current_item / self.total_items * 100, 1)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["percent"] = self.percent
        return payload
