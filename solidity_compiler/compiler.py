"""
Solidity Compiler Adapter
=========================

Compiles one flattened compilation unit with fixed settings through
py-solc-x, splits diagnostics into errors and warnings and picks the
result contract from a unit that may define several.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import solcx
from solcx.exceptions import SolcError

from pipeline_settings import EVM_VERSION, OPTIMIZER_RUNS, Settings
from .models import (
    CompileResult,
    CompilerError,
    Diagnostic,
    DiagnosticSeverity,
    FatalCompilerStateError,
)

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "contract.sol"
DEFAULT_CONTRACT_NAME = "TempContract"

OUTPUT_SELECTION = ["abi", "evm.bytecode", "evm.deployedBytecode", "metadata", "devdoc", "userdoc"]

# abstract contracts, interfaces and libraries cannot be the result contract
CONTRACT_DECL_RE = re.compile(r"^\s*(abstract\s+)?contract\s+(\w+)", re.MULTILINE)


def build_standard_input(source: str, file_name: str = DEFAULT_FILE_NAME) -> Dict[str, Any]:
    """Standard-JSON compiler input with the fixed optimizer and EVM settings"""
    return {
        "language": "Solidity",
        "sources": {
            file_name: {"content": source},
        },
        "settings": {
            "outputSelection": {
                "*": {"*": list(OUTPUT_SELECTION)},
            },
            "optimizer": {
                "enabled": True,
                "runs": OPTIMIZER_RUNS,
            },
            "evmVersion": EVM_VERSION,
        },
    }


class SolcCompiler:
    """A resolved solc binary of one pinned version"""

    def __init__(self, version: str):
        self.version = version

    @classmethod
    def resolve(cls, settings: Settings, install: bool = True) -> "SolcCompiler":
        """
        Make sure the configured solc version is available.

        Args:
            settings: Pipeline settings (solc_version)
            install: Download the compiler when it is not installed yet

        Returns:
            SolcCompiler bound to that version
        """
        version = settings.solc_version
        installed = [str(v) for v in solcx.get_installed_solc_versions()]
        if version not in installed:
            if not install:
                raise CompilerError(f"solc {version} is not installed")
            logger.info("Solc version %s not found. Attempting to install...", version)
            solcx.install_solc(version)
        return cls(version)

    def compile_standard(self, input_json: Dict[str, Any]) -> Dict[str, Any]:
        """Run the compiler on standard-JSON input, returning its JSON output."""
        try:
            return solcx.compile_standard(input_json, solc_version=self.version, allow_empty=True)
        except SolcError as e:
            # solcx raises when the output holds errors; the output itself is still there
            if e.stdout_data:
                try:
                    return json.loads(e.stdout_data)
                except ValueError:
                    pass
            raise CompilerError(f"solc {self.version} failed: {e}") from e


def classify_diagnostics(output: Dict[str, Any]) -> Tuple[List[Diagnostic], List[Diagnostic]]:
    """Split compiler diagnostics into (errors, warnings), keeping emission order."""
    errors: List[Diagnostic] = []
    warnings: List[Diagnostic] = []
    for entry in output.get("errors") or []:
        severity = DiagnosticSeverity.from_string(entry.get("severity"))
        if severity is None:
            continue
        diagnostic = Diagnostic(
            severity=severity,
            message=entry.get("message", ""),
            formatted_message=entry.get("formattedMessage"),
        )
        if severity == DiagnosticSeverity.ERROR:
            errors.append(diagnostic)
        else:
            warnings.append(diagnostic)
    return errors, warnings


def _creation_bytecode(contract_output: Dict[str, Any]) -> str:
    return ((contract_output.get("evm") or {}).get("bytecode") or {}).get("object") or ""


def select_contract(
    contracts: Dict[str, Dict[str, Any]],
    requested_name: Optional[str],
) -> Tuple[str, Dict[str, Any]]:
    """
    Pick the result contract from one compilation unit.

    Order: exact name, case-insensitive name, first contract with non-empty
    creation bytecode, first contract.
    """
    if not contracts:
        raise FatalCompilerStateError("Compiler returned no errors but no contracts")

    if requested_name:
        if requested_name in contracts:
            return requested_name, contracts[requested_name]
        lowered = requested_name.lower()
        for name, output in contracts.items():
            if name.lower() == lowered:
                return name, output

    for name, output in contracts.items():
        if _creation_bytecode(output):
            logger.debug("Using non-abstract contract: %s", name)
            return name, output

    name = next(iter(contracts))
    return name, contracts[name]


def compile_source(
    source: str,
    contract_name: Optional[str],
    compiler: SolcCompiler,
    file_name: str = DEFAULT_FILE_NAME,
) -> CompileResult:
    """
    Compile a flattened source.

    Returns a failed CompileResult when the compiler reports errors;
    raises FatalCompilerStateError when it reports none but yields no contracts.
    """
    output = compiler.compile_standard(build_standard_input(source, file_name))
    errors, warnings = classify_diagnostics(output)

    if errors:
        return CompileResult(
            contract_name=contract_name or DEFAULT_CONTRACT_NAME,
            errors=errors,
            warnings=warnings,
        )

    contracts = (output.get("contracts") or {}).get(file_name) or {}
    if not contracts:
        # Fall back to any file in the unit
        for file_contracts in (output.get("contracts") or {}).values():
            contracts.update(file_contracts or {})

    name, selected = select_contract(contracts, contract_name)
    logger.debug("Available contracts: %s; selected %s", ", ".join(contracts), name)

    evm = selected.get("evm") or {}
    return CompileResult(
        contract_name=name,
        abi=selected.get("abi") or [],
        bytecode=_creation_bytecode(selected),
        deployed_bytecode=(evm.get("deployedBytecode") or {}).get("object") or "",
        metadata=selected.get("metadata"),
        devdoc=selected.get("devdoc"),
        userdoc=selected.get("userdoc"),
        warnings=warnings,
    )


def extract_contract_name(source: str, default: str = DEFAULT_CONTRACT_NAME) -> str:
    """Name of the first concrete contract declared in the source."""
    for match in CONTRACT_DECL_RE.finditer(source or ""):
        if not match.group(1):
            return match.group(2)
    return default
