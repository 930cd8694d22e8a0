"""
Solidity compiler adapter: flattening, compilation and contract selection
"""

from .models import (
    CompileResult,
    CompilerError,
    Diagnostic,
    DiagnosticSeverity,
    FatalCompilerStateError,
    FlatteningError,
)
from .compiler import (
    SolcCompiler,
    build_standard_input,
    classify_diagnostics,
    compile_source,
    extract_contract_name,
    select_contract,
)
from .flattener import HardhatFlattener, normalize_flattened_source, rewrite_pragma
from .service import CompilerService, temporary_contract_file

__all__ = [
    'CompileResult',
    'CompilerError',
    'Diagnostic',
    'DiagnosticSeverity',
    'FatalCompilerStateError',
    'FlatteningError',
    'SolcCompiler',
    'build_standard_input',
    'classify_diagnostics',
    'compile_source',
    'extract_contract_name',
    'select_contract',
    'HardhatFlattener',
    'normalize_flattened_source',
    'rewrite_pragma',
    'CompilerService',
    'temporary_contract_file',
]
