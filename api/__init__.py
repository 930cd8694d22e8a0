"""
HTTP API over the contract pipeline
"""

from .app import PipelineServices, create_app

__all__ = [
    'PipelineServices',
    'create_app',
]
