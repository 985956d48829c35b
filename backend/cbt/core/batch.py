"""
Batch operation helpers shared by the activation gate and the API layer.

A batch reports per-item outcomes instead of failing as a whole: items that
succeed are listed in ``results``, items that cannot be processed contribute a
message to ``errors``.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List

from cbt.core.error_responses import ErrorMessages
from cbt.core.exceptions import ValidationError


class BatchOperation(str, Enum):
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    TOGGLE = "toggle"


class CodeAction(str, Enum):
    """What actually happened to a code."""

    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"


@dataclass
class BatchItemResult:
    code: str
    action: CodeAction
    new_status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "action": self.action.value,
            "new_status": self.new_status,
        }


@dataclass
class BatchResult:
    results: List[BatchItemResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.results)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def add_success(self, item: BatchItemResult) -> None:
        self.results.append(item)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    @property
    def summary(self) -> str:
        return f"Successfully processed {self.success_count} test codes"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [item.to_dict() for item in self.results],
            "errors": list(self.errors),
            "success_count": self.success_count,
            "error_count": self.error_count,
        }


def normalize_code_ids(raw_ids: Iterable[Any]) -> List[int]:
    """
    Coerce submitted ids to positive ints, dropping anything else.

    Order is preserved and duplicates are removed so a code is never
    processed twice in one batch.

    Raises:
        ValidationError: If nothing was submitted, or nothing usable remains
    """
    raw = list(raw_ids or [])
    if not raw:
        raise ValidationError(ErrorMessages.NO_CODES_SELECTED)

    seen = set()
    code_ids: List[int] = []
    for value in raw:
        if isinstance(value, bool):
            continue
        try:
            code_id = int(value)
        except (TypeError, ValueError):
            continue
        if code_id > 0 and code_id not in seen:
            seen.add(code_id)
            code_ids.append(code_id)

    if not code_ids:
        raise ValidationError(ErrorMessages.INVALID_CODE_IDS)
    return code_ids
