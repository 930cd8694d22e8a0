"""
LLM client layer: model calls and structured-response extraction
"""

from .client import (
    ModelCallError,
    ModelCaller,
    ModelClient,
    ModelNotConfiguredError,
    call_chat_completion,
    call_llm,
)
from .json_extraction import (
    ExtractionOutcome,
    ExtractionStrategy,
    extract_json,
    extract_json_outcome,
    sanitize_json_text,
)

__all__ = [
    'ModelCallError',
    'ModelCaller',
    'ModelClient',
    'ModelNotConfiguredError',
    'call_chat_completion',
    'call_llm',
    'ExtractionOutcome',
    'ExtractionStrategy',
    'extract_json',
    'extract_json_outcome',
    'sanitize_json_text',
]
