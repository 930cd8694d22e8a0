"""
Data Models for contract analysis
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

# Keys that never name a function in an accumulator or request
RESERVED_KEYS = frozenset({"error"})


def strip_reserved(names: Iterable[str]) -> List[str]:
    return [n for n in names if n not in RESERVED_KEYS]


class SecurityNoteType(Enum):
    """Security note levels"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @classmethod
    def from_string(cls, s: Any) -> "SecurityNoteType":
        """Convert string to SecurityNoteType"""
        s_lower = str(s or "").lower()
        for t in cls:
            if t.value == s_lower:
                return t
        if "crit" in s_lower or "high" in s_lower:
            return cls.ERROR
        elif "warn" in s_lower or "medium" in s_lower:
            return cls.WARNING
        else:
            return cls.INFO


@dataclass
class SecurityNote:
    type: SecurityNoteType
    message: str

    def to_dict(self) -> Dict:
        return {"type": self.type.value, "message": self.message}


@dataclass
class FunctionAnalysis:
    """Documentation record for one function"""
    description: str
    source: str = ""
    example: str = ""
    security: List[SecurityNote] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Optional["FunctionAnalysis"]:
        """Validate a model-produced record; None when unusable"""
        if not isinstance(data, dict):
            return None
        description = data.get("description")
        if not isinstance(description, str) or not description.strip():
            return None

        notes = []
        for item in data.get("security") or []:
            if isinstance(item, dict) and isinstance(item.get("message"), str):
                notes.append(SecurityNote(SecurityNoteType.from_string(item.get("type")), item["message"]))
            elif isinstance(item, str):
                notes.append(SecurityNote(SecurityNoteType.INFO, item))

        return cls(
            description=description.strip(),
            source=data.get("source") if isinstance(data.get("source"), str) else "",
            example=data.get("example") if isinstance(data.get("example"), str) else "",
            security=notes,
        )

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            "description": self.description,
            "source": self.source,
            "example": self.example,
            "security": [n.to_dict() for n in self.security],
        }


@dataclass
class DiagramItem:
    """One Mermaid sequence diagram and its explanation"""
    mermaid_code: str
    explanation: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> Optional["DiagramItem"]:
        if not isinstance(data, dict):
            return None
        code = data.get("mermaidCode")
        if not isinstance(code, str) or not code.strip():
            return None
        explanation = data.get("explanation")
        return cls(code.strip(), explanation if isinstance(explanation, str) else "")

    def to_dict(self) -> Dict:
        return {"mermaidCode": self.mermaid_code, "explanation": self.explanation}


@dataclass
class AnalysisBatch:
    """A slice of the function-name list processed by one model call"""
    index: int
    member_names: List[str]
    total: int = 1

    @property
    def label(self) -> str:
        return f"batch {self.index + 1}/{self.total}"


@dataclass
class BatchMergeAccumulator:
    """name -> record map that only grows; failures are recorded beside it"""
    entries: Dict[str, Any] = field(default_factory=dict)
    overall_success: bool = True
    failed_batches: List[int] = field(default_factory=list)
    total_batches: int = 0

    def merge(self, batch: AnalysisBatch, records: Dict[str, Any]) -> int:
        """Add records for the batch's requested names. Returns how many were merged."""
        merged = 0
        for name in batch.member_names:
            if name in RESERVED_KEYS or name not in records:
                continue
            self.entries[name] = records[name]
            merged += 1
        return merged

    def mark_failed(self, batch: AnalysisBatch) -> None:
        self.overall_success = False
        self.failed_batches.append(batch.index)


@dataclass
class FunctionAnalysisResult:
    """Merged per-function documentation"""
    function_analyses: Dict[str, FunctionAnalysis]
    requested_names: List[str]
    overall_success: bool = True
    failed_batches: List[int] = field(default_factory=list)
    total_batches: int = 0

    @property
    def total_failure(self) -> bool:
        return bool(self.requested_names) and not self.function_analyses

    def to_dict(self) -> Dict:
        return {
            "functionAnalyses": {name: fa.to_dict() for name, fa in self.function_analyses.items()},
        }


@dataclass
class DiagramAnalysisResult:
    """General diagram, per-function diagrams and the overview graph"""
    general_diagram: Optional[DiagramItem]
    function_diagrams: Dict[str, DiagramItem]
    nodes: List[Dict] = field(default_factory=list)
    edges: List[Dict] = field(default_factory=list)
    overall_success: bool = True
    failed_batches: List[int] = field(default_factory=list)
    total_batches: int = 0

    @property
    def valid(self) -> bool:
        return bool(self.nodes) and bool(self.edges)

    def to_dict(self) -> Dict:
        return {
            "generalDiagram": self.general_diagram.to_dict() if self.general_diagram else None,
            "functionDiagrams": {name: d.to_dict() for name, d in self.function_diagrams.items()},
            "nodes": self.nodes,
            "edges": self.edges,
        }


@dataclass
class ContractAnalysis:
    """Documentation and diagrams for one contract"""
    functions: FunctionAnalysisResult
    diagrams: DiagramAnalysisResult

    def to_dict(self) -> Dict:
        """Failed parts are reported as None"""
        return {
            "functionAnalyses": None if self.functions.total_failure else self.functions.to_dict()["functionAnalyses"],
            "diagramData": self.diagrams.to_dict() if self.diagrams.valid else None,
        }
