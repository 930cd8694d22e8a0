"""
Contract Analyzer Test Suite
============================

Tests for batching, partial-failure merging and the diagram overview graph,
driven by a scripted model that answers for whichever names it is asked.
"""

import json
import re

import pytest

from conftest import ScriptedModel
from contract_analyzer import (
    AnalysisBatch,
    BatchMergeAccumulator,
    ContractAnalyzer,
    DiagramItem,
    FunctionAnalysis,
    SecurityNoteType,
    build_flow_graph,
    function_names_from_abi,
    split_into_batches,
)
from contract_analyzer.prompts import GENERAL_DIAGRAM_SYSTEM
from llm_client import ModelCallError


# ============================================================================
# TEST CONTRACTS
# ============================================================================

VAULT_SOURCE = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract Vault {
    mapping(address => uint256) public balances;

    function deposit() external payable {
        balances[msg.sender] += msg.value;
    }
}
"""


def abi_for(names):
    return [{"type": "function", "name": n, "inputs": [], "outputs": []} for n in names]


NAMES_RE = re.compile(r"these functions: (\[.*?\])")


def requested_names(messages):
    return json.loads(NAMES_RE.search(messages[-1]["content"]).group(1))


def analysis_reply(messages):
    return json.dumps({
        n: {
            "description": f"{n} updates the vault",
            "source": f"function {n}() external {{}}",
            "example": f"await vault.{n}()",
            "security": [{"type": "warning", "message": "no access control"}],
        }
        for n in requested_names(messages)
    })


def diagram_reply(messages):
    if messages[0]["content"] == GENERAL_DIAGRAM_SYSTEM:
        return json.dumps({"generalDiagram": {
            "mermaidCode": "sequenceDiagram\n    participant User\n    participant Vault\n    User->>Vault: deposit()",
            "explanation": "Users deposit ether",
        }})
    return json.dumps({
        n: {"mermaidCode": f"sequenceDiagram\n    participant User\n    User->>Vault: {n}()", "explanation": f"Calls {n}"}
        for n in requested_names(messages)
    })


def quiet():
    return lambda _: None


# ============================================================================
# BATCHING
# ============================================================================

def test_function_names_from_abi_order_and_dedup():
    abi = abi_for(["deposit", "withdraw"]) + [
        {"type": "event", "name": "Deposited"},
        {"type": "function", "name": "deposit", "inputs": [{"type": "uint256"}]},
        {"type": "constructor", "inputs": []},
        {"type": "function", "name": "error"},
        {"type": "function", "name": "balanceOf"},
    ]

    assert function_names_from_abi(abi) == ["deposit", "withdraw", "balanceOf"]


def test_function_names_from_empty_abi():
    assert function_names_from_abi(None) == []
    assert function_names_from_abi([]) == []


@pytest.mark.parametrize("count,sizes", [(7, [5, 2]), (12, [5, 5, 2]), (5, [5]), (0, [])])
def test_split_into_batches_sizes(count, sizes):
    names = [f"f{i}" for i in range(count)]

    batches = split_into_batches(names)

    assert [len(b.member_names) for b in batches] == sizes
    assert [n for b in batches for n in b.member_names] == names


def test_split_rejects_non_positive_size():
    with pytest.raises(ValueError):
        split_into_batches(["a"], size=0)


def test_accumulator_merges_only_requested_names():
    acc = BatchMergeAccumulator()
    batch = AnalysisBatch(index=0, member_names=["a", "error"])

    merged = acc.merge(batch, {"a": 1, "b": 2, "error": "boom"})

    assert merged == 1
    assert acc.entries == {"a": 1}


# ============================================================================
# FUNCTION ANALYSIS
# ============================================================================

def test_twelve_functions_second_batch_fails(settings):
    names = [f"fn{i}" for i in range(12)]
    model = ScriptedModel(analysis_reply, ModelCallError("boom"), analysis_reply)
    analyzer = ContractAnalyzer(model, settings, log=quiet())

    result = analyzer.analyze_functions(VAULT_SOURCE, abi_for(names))

    assert len(model.calls) == 3
    assert list(result.function_analyses) == names[:5] + names[10:]
    assert not result.overall_success
    assert result.failed_batches == [1]
    assert result.total_batches == 3
    assert not result.total_failure


def test_unparseable_second_batch_keeps_first_five(settings):
    names = [f"fn{i}" for i in range(7)]
    model = ScriptedModel(analysis_reply, "I could not analyze these functions, sorry.")
    analyzer = ContractAnalyzer(model, settings, log=quiet())

    result = analyzer.analyze_functions(VAULT_SOURCE, abi_for(names))

    assert len(result.function_analyses) == 5
    assert "error" not in result.function_analyses
    assert result.failed_batches == [1]
    body = result.to_dict()
    assert list(body["functionAnalyses"]) == names[:5]


def test_response_with_only_unrequested_names_fails_batch(settings):
    reply = json.dumps({"other": {"description": "not asked for"}, "error": {"description": "x"}})
    model = ScriptedModel(reply)
    analyzer = ContractAnalyzer(model, settings, log=quiet())

    result = analyzer.analyze_functions(VAULT_SOURCE, abi_for(["deposit"]))

    assert result.function_analyses == {}
    assert result.total_failure


def test_analysis_record_shape(settings):
    reply = analysis_reply([{"content": 'these functions: ["deposit"]'}])
    model = ScriptedModel("```json\n" + reply + "\n```")
    analyzer = ContractAnalyzer(model, settings, log=quiet())

    result = analyzer.analyze_functions(VAULT_SOURCE, abi_for(["deposit"]))

    record = result.to_dict()["functionAnalyses"]["deposit"]
    assert record["description"] == "deposit updates the vault"
    assert record["security"] == [{"type": "warning", "message": "no access control"}]


def test_function_analysis_validation():
    assert FunctionAnalysis.from_dict({"description": "  "}) is None
    assert FunctionAnalysis.from_dict("text") is None

    fa = FunctionAnalysis.from_dict({"description": "d", "security": [{"type": "critical", "message": "m"}, "plain"]})
    assert [n.type for n in fa.security] == [SecurityNoteType.ERROR, SecurityNoteType.INFO]
    assert fa.source == ""


def test_no_functions_is_not_a_failure(settings):
    model = ScriptedModel()
    analyzer = ContractAnalyzer(model, settings, log=quiet())

    result = analyzer.analyze_functions(VAULT_SOURCE, [])

    assert model.calls == []
    assert not result.total_failure


# ============================================================================
# DIAGRAMS
# ============================================================================

def test_general_diagram_failure_keeps_function_diagrams(settings):
    names = ["deposit", "withdraw"]
    model = ScriptedModel(ModelCallError("down"), diagram_reply)
    analyzer = ContractAnalyzer(model, settings, log=quiet())

    result = analyzer.generate_diagrams(VAULT_SOURCE, abi_for(names))

    assert result.general_diagram is None
    assert list(result.function_diagrams) == names
    assert result.valid
    body = result.to_dict()
    assert body["generalDiagram"] is None
    assert body["functionDiagrams"]["deposit"]["mermaidCode"].startswith("sequenceDiagram")


def test_diagrams_for_given_names_strip_reserved(settings):
    model = ScriptedModel(default=diagram_reply)
    analyzer = ContractAnalyzer(model, settings, log=quiet())

    result = analyzer.generate_diagrams(VAULT_SOURCE, abi_for(["deposit"]), function_names=["deposit", "error"])

    assert list(result.function_diagrams) == ["deposit"]
    assert requested_names(model.calls[1]) == ["deposit"]
    assert result.general_diagram.explanation == "Users deposit ether"


def test_diagrams_all_batches_fail_is_invalid(settings):
    model = ScriptedModel(diagram_reply, "not json")
    analyzer = ContractAnalyzer(model, settings, log=quiet())

    result = analyzer.generate_diagrams(VAULT_SOURCE, abi_for(["deposit"]))

    assert result.function_diagrams == {}
    assert not result.valid


def test_build_flow_graph():
    diagrams = {n: DiagramItem("sequenceDiagram", f"about {n}") for n in ["a", "b", "c", "d", "e"]}

    graph = build_flow_graph("Vault", diagrams)

    assert len(graph["nodes"]) == 6
    assert graph["nodes"][0]["data"]["label"] == "Vault"
    assert [e["target"] for e in graph["edges"]] == ["fn-a", "fn-b", "fn-c", "fn-d", "fn-e"]
    assert all(e["source"] == "contract" for e in graph["edges"])
    # fifth function wraps to the second row
    assert graph["nodes"][5]["position"] == {"x": 0, "y": 280}


def test_build_flow_graph_without_diagrams_has_no_edges():
    graph = build_flow_graph("Vault", {})

    assert len(graph["nodes"]) == 1
    assert graph["edges"] == []


# ============================================================================
# FULL ANALYSIS
# ============================================================================

def test_analyze_contract_diagrams_documented_functions(settings):
    names = ["deposit", "withdraw"]

    def reply(messages):
        if "auditor" in messages[0]["content"]:
            return json.dumps({"deposit": {"description": "Deposits ether"}})
        return diagram_reply(messages)

    model = ScriptedModel(default=reply)
    analyzer = ContractAnalyzer(model, settings, log=quiet())

    analysis = analyzer.analyze_contract(VAULT_SOURCE, abi_for(names))

    assert list(analysis.functions.function_analyses) == ["deposit"]
    assert list(analysis.diagrams.function_diagrams) == ["deposit"]
    assert "Deposits ether" in model.prompts[-1]
    body = analysis.to_dict()
    assert body["diagramData"]["nodes"][1]["id"] == "fn-deposit"


def test_analyze_contract_total_failure_reports_none(settings):
    model = ScriptedModel(default=ModelCallError("down"))
    analyzer = ContractAnalyzer(model, settings, log=quiet())

    body = analyzer.analyze_contract(VAULT_SOURCE, abi_for(["deposit"])).to_dict()

    assert body == {"functionAnalyses": None, "diagramData": None}
