"""
Data Models for the Solidity compiler adapter
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CompilerError(RuntimeError):
    """Base class for compiler adapter failures"""


class FatalCompilerStateError(CompilerError):
    """Compiler reported no errors but produced no contracts"""


class FlatteningError(CompilerError):
    """The flattening subprocess failed"""


class DiagnosticSeverity(Enum):
    """Diagnostic severity levels kept from compiler output"""
    ERROR = "error"
    WARNING = "warning"

    @classmethod
    def from_string(cls, s: Optional[str]) -> Optional["DiagnosticSeverity"]:
        """Convert compiler severity to DiagnosticSeverity (None for info and others)"""
        s_lower = (s or "").lower()
        for sev in cls:
            if sev.value == s_lower:
                return sev
        return None


@dataclass(frozen=True)
class Diagnostic:
    """A single compiler error or warning"""
    severity: DiagnosticSeverity
    message: str
    formatted_message: Optional[str] = None

    @classmethod
    def error(cls, message: str) -> "Diagnostic":
        return cls(DiagnosticSeverity.ERROR, message)

    def render(self) -> str:
        """SEVERITY: message, preferring the formatted compiler message"""
        text = (self.formatted_message or self.message).strip()
        return f"{self.severity.value.upper()}: {text}"

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        data = {
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.formatted_message:
            data["formattedMessage"] = self.formatted_message
        return data


@dataclass
class CompileResult:
    """Result of compiling one compilation unit"""
    contract_name: str
    abi: List[Dict[str, Any]] = field(default_factory=list)
    bytecode: str = ""
    deployed_bytecode: str = ""
    metadata: Optional[str] = None
    devdoc: Optional[Dict] = None
    userdoc: Optional[Dict] = None
    errors: List[Diagnostic] = field(default_factory=list)
    warnings: List[Diagnostic] = field(default_factory=list)
    flattened_source: Optional[str] = None

    def __post_init__(self):
        if self.errors:
            self.abi = []
            self.bytecode = ""
            self.deployed_bytecode = ""

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            "contract_name": self.contract_name,
            "success": self.success,
            "abi": self.abi,
            "bytecode": self.bytecode,
            "deployed_bytecode": self.deployed_bytecode,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }
