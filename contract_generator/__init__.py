"""
Contract generation: bounded generate-compile-repair loop
"""

from .models import AttemptOutcome, GeneratedContractResult, GenerationAttempt, GenerationState
from .state_machine import GenerationEvent, InvalidTransition, next_state
from .generator import ContractGenerator

__all__ = [
    'AttemptOutcome',
    'GeneratedContractResult',
    'GenerationAttempt',
    'GenerationState',
    'GenerationEvent',
    'InvalidTransition',
    'next_state',
    'ContractGenerator',
]
