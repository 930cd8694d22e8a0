"""
Contract analysis: batched function documentation and sequence diagrams
"""

from .models import (
    AnalysisBatch,
    BatchMergeAccumulator,
    ContractAnalysis,
    DiagramAnalysisResult,
    DiagramItem,
    FunctionAnalysis,
    FunctionAnalysisResult,
    SecurityNote,
    SecurityNoteType,
)
from .batching import function_names_from_abi, run_batches, split_into_batches
from .analyzer import ContractAnalyzer, build_flow_graph

__all__ = [
    'AnalysisBatch',
    'BatchMergeAccumulator',
    'ContractAnalysis',
    'DiagramAnalysisResult',
    'DiagramItem',
    'FunctionAnalysis',
    'FunctionAnalysisResult',
    'SecurityNote',
    'SecurityNoteType',
    'function_names_from_abi',
    'run_batches',
    'split_into_batches',
    'ContractAnalyzer',
    'build_flow_graph',
]
