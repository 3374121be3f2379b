"""
Outcome of one module translation run.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class TranslationRunResult:
    """
    Immutable summary of a run.

    success is True iff no record failed. A run with nothing pending is a
    success with translated_items == 0. last_translated_at is the completion
    time of the run when at least one record was translated.
    """
    success: bool
    translated_items: int
    failed_items: int
    errors: Tuple[str, ...] = ()
    last_translated_at: Optional[datetime] = None
    module: str = ""
    language: str = ""
    total_items: int = 0
    skipped_items: int = 0
    total_tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "translated_items": self.translated_items,
            "failed_items": self.failed_items,
            "errors": list(self.errors),
            "last_translated_at": self.last_translated_at.isoformat() if self.last_translated_at else None,
            "module": self.module,
            "language": self.language,
            "total_items": self.total_items,
            "skipped_items": self.skipped_items,
            "total_tokens": self.total_tokens,
        }
