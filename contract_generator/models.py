"""
Data Models for contract generation
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from solidity_compiler.models import Diagnostic


class GenerationState(Enum):
    """States of the generate-compile-repair loop"""
    DRAFTING = "drafting"
    COMPILING = "compiling"
    REPAIRING = "repairing"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"

    @property
    def terminal(self) -> bool:
        return self in (GenerationState.SUCCESS, GenerationState.EXHAUSTED)


class AttemptOutcome(Enum):
    """How a single attempt ended"""
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable-failure"
    TERMINAL_FAILURE = "terminal-failure"


@dataclass
class GenerationAttempt:
    """One loop iteration: the candidate it produced and its diagnostics"""
    attempt_number: int
    source_text: str = ""
    diagnostics: List[Diagnostic] = field(default_factory=list)
    outcome: Optional[AttemptOutcome] = None

    def __post_init__(self):
        if self.attempt_number < 1:
            raise ValueError("attempt_number starts at 1")

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            "attempt": self.attempt_number,
            "source_length": len(self.source_text),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "outcome": self.outcome.value if self.outcome else None,
        }


@dataclass
class GeneratedContractResult:
    """Terminal value of one generation or refinement run"""
    source: str
    attempts_used: int
    abi: List[Dict] = field(default_factory=list)
    bytecode: str = ""
    warnings: List[Diagnostic] = field(default_factory=list)
    errors: List[Diagnostic] = field(default_factory=list)
    contract_name: Optional[str] = None
    history: List[GenerationAttempt] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @classmethod
    def succeeded(
        cls,
        source: str,
        abi: List[Dict],
        bytecode: str,
        warnings: List[Diagnostic],
        attempts_used: int,
        max_attempts: int,
        contract_name: Optional[str] = None,
        history: Optional[List[GenerationAttempt]] = None,
    ) -> "GeneratedContractResult":
        if not 1 <= attempts_used <= max_attempts:
            raise ValueError(f"attempts_used {attempts_used} outside 1..{max_attempts}")
        return cls(
            source=source,
            attempts_used=attempts_used,
            abi=list(abi or []),
            bytecode=bytecode or "",
            warnings=list(warnings or []),
            contract_name=contract_name,
            history=list(history or []),
        )

    @classmethod
    def failed(
        cls,
        source: str,
        errors: List[Diagnostic],
        warnings: List[Diagnostic],
        attempts_used: int,
        max_attempts: int,
        contract_name: Optional[str] = None,
        history: Optional[List[GenerationAttempt]] = None,
    ) -> "GeneratedContractResult":
        if not errors:
            raise ValueError("a failed result needs at least one error")
        if not 1 <= attempts_used <= max_attempts:
            raise ValueError(f"attempts_used {attempts_used} outside 1..{max_attempts}")
        return cls(
            source=source,
            attempts_used=attempts_used,
            warnings=list(warnings or []),
            errors=list(errors),
            contract_name=contract_name,
            history=list(history or []),
        )

    def to_dict(self) -> Dict:
        """HTTP response body"""
        data = {
            "source": self.source,
            "warnings": [w.to_dict() for w in self.warnings],
            "attempts": self.attempts_used,
        }
        if self.success:
            data["abi"] = self.abi
            data["bytecode"] = self.bytecode
        else:
            data["errors"] = [e.to_dict() for e in self.errors]
        return data
