"""
Shared test fakes: scripted model, canned compiler, pass-through flattener
"""

import pytest

from pipeline_settings import Settings
from solidity_compiler.flattener import rewrite_pragma
from solidity_compiler.service import CompilerService


# ============================================================================
# FAKES
# ============================================================================

class ScriptedModel:
    """Model caller that replays queued responses (strings or exceptions)"""

    def __init__(self, *responses, default=None):
        self.responses = list(responses)
        self.default = default
        self.calls = []

    def call_model(self, messages, **options):
        self.calls.append(messages)
        if self.responses:
            response = self.responses.pop(0)
        elif self.default is not None:
            response = self.default
        else:
            raise AssertionError("ScriptedModel ran out of responses")
        if callable(response):
            response = response(messages)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def prompts(self):
        """Last user message of every call"""
        return [m[-1]["content"] for m in self.calls]


def solc_error(message, severity="error"):
    return {
        "severity": severity,
        "message": message,
        "formattedMessage": f"contract.sol: {severity.capitalize()}: {message}",
    }


def solc_contract(abi=None, bytecode="6080604052"):
    return {
        "abi": abi if abi is not None else [],
        "evm": {
            "bytecode": {"object": bytecode},
            "deployedBytecode": {"object": bytecode[:6]},
        },
        "metadata": "{}",
        "devdoc": {},
        "userdoc": {},
    }


def solc_output(contracts=None, errors=None, file_name="contract.sol"):
    output = {}
    if errors:
        output["errors"] = errors
    if contracts is not None:
        output["contracts"] = {file_name: contracts}
    return output


class FakeSolc:
    """Compiler capability returning canned standard-JSON output"""

    version = "0.8.29"

    def __init__(self, handler):
        # handler: dict output, list of outputs (one per call), or callable(source) -> output
        self.handler = handler
        self.sources = []

    def compile_standard(self, input_json):
        source = next(iter(input_json["sources"].values()))["content"]
        self.sources.append(source)
        if callable(self.handler):
            result = self.handler(source)
        elif isinstance(self.handler, list):
            result = self.handler.pop(0)
        else:
            result = self.handler
        if isinstance(result, Exception):
            raise result
        return result


def passthrough_flattener(source, temp_path, original_path=None):
    return rewrite_pragma(source, "0.8.29")


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings(tmp_path):
    return Settings(
        api_key="test-key",
        contracts_dir=str(tmp_path / "contracts"),
        project_root=str(tmp_path),
        endpoint_backoff_seconds=0.0,
    )


@pytest.fixture
def make_compiler_service(settings):
    def _make(handler):
        return CompilerService(settings, FakeSolc(handler), passthrough_flattener)
    return _make
