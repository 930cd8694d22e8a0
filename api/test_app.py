"""
HTTP API Test Suite
===================

Exercises every route through FastAPI's TestClient with a scripted model,
a canned compiler and a recording sleep.
"""

import json
import re
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from api import PipelineServices, create_app
from conftest import ScriptedModel, solc_contract, solc_error, solc_output
from llm_client import ModelCallError


# ============================================================================
# TEST CONTRACTS
# ============================================================================

COUNTER = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract Counter {
    uint256 public count;

    function increment() external {
        count += 1;
    }
}
"""

COUNTER_ABI = [
    {"type": "function", "name": "count", "inputs": [], "outputs": [{"type": "uint256"}]},
    {"type": "function", "name": "increment", "inputs": [], "outputs": []},
]

PARSER_ERROR = solc_error("ParserError: Expected ';' but got '}'")


def compile_by_marker(source):
    if "BROKEN" in source:
        return solc_output(errors=[PARSER_ERROR])
    return solc_output(
        contracts={"Counter": solc_contract(abi=COUNTER_ABI)},
        errors=[solc_error("Unused local variable", severity="warning")],
    )


NAMES_RE = re.compile(r"these functions: (\[.*?\])")


def model_reply(messages):
    """Answers documentation, general-diagram and diagram-batch prompts"""
    system = messages[0]["content"]
    if "generalDiagram" in system:
        return json.dumps({"generalDiagram": {"mermaidCode": "sequenceDiagram\n    User->>Counter: increment()", "explanation": "flow"}})
    names = json.loads(NAMES_RE.search(messages[-1]["content"]).group(1))
    if "auditor" in system:
        return json.dumps({n: {"description": f"{n} docs"} for n in names})
    return json.dumps({n: {"mermaidCode": f"sequenceDiagram\n    User->>Counter: {n}()", "explanation": n} for n in names})


@pytest.fixture
def make_client(settings, make_compiler_service):
    def _make(model=None, handler=None, sleeps=None, **overrides):
        services = PipelineServices(
            settings=replace(settings, **overrides),
            model=model or ScriptedModel(),
            compiler_service=make_compiler_service(handler or compile_by_marker),
            sleep=sleeps.append if sleeps is not None else (lambda _: None),
        )
        return TestClient(create_app(services))
    return _make


# ============================================================================
# HEALTH / VALIDATION
# ============================================================================

def test_healthz(make_client):
    resp = make_client().get("/healthz")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_malformed_body_is_400(make_client):
    resp = make_client().post("/generate/documentation", json={"source": COUNTER, "abi": "not a list"})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request body"


# ============================================================================
# COMPILE
# ============================================================================

@pytest.mark.parametrize("source", ["", "   \n", None])
def test_compile_blank_source(make_client, source):
    resp = make_client().post("/compile", json={"source": source})

    assert resp.status_code == 400
    assert list(resp.json()) == ["error"]


def test_compile_success(make_client):
    resp = make_client().post("/compile", json={"source": COUNTER})

    assert resp.status_code == 200
    body = resp.json()
    assert body["abi"] == COUNTER_ABI
    assert body["bytecode"] == "6080604052"
    assert body["warnings"][0]["severity"] == "warning"
    assert "functionAnalyses" not in body


def test_compile_errors(make_client):
    resp = make_client().post("/compile", json={"source": COUNTER.replace("count;", "count BROKEN")})

    assert resp.status_code == 400
    body = resp.json()
    assert body["errors"][0]["message"] == PARSER_ERROR["message"]
    assert body["warnings"] == []
    assert "abi" not in body


def test_compile_with_analysis(make_client):
    client = make_client(model=ScriptedModel(default=model_reply))

    resp = client.post("/compile", json={"source": COUNTER, "analyze": True})

    assert resp.status_code == 200
    body = resp.json()
    assert set(body["functionAnalyses"]) == {"count", "increment"}
    assert body["diagramData"]["generalDiagram"]["explanation"] == "flow"
    assert len(body["diagramData"]["edges"]) == 2


def test_compile_analysis_failure_keeps_compile_result(make_client):
    client = make_client(model=ScriptedModel(default=ModelCallError("down")))

    body = client.post("/compile", json={"source": COUNTER, "analyze": True}).json()

    assert body["abi"] == COUNTER_ABI
    assert body["functionAnalyses"] is None
    assert body["diagramData"] is None


def test_compile_fatal_state_is_500(make_client):
    resp = make_client(handler=solc_output(contracts={})).post("/compile", json={"source": COUNTER})

    assert resp.status_code == 500
    assert "error" in resp.json()


# ============================================================================
# GENERATE / REFINE
# ============================================================================

def test_generate_blank_prompt(make_client):
    resp = make_client().post("/generate", json={"prompt": "  "})

    assert resp.status_code == 400
    assert list(resp.json()) == ["error"]


def test_generate_repairs_then_succeeds(make_client):
    model = ScriptedModel(COUNTER.replace("count;", "count BROKEN"), COUNTER)

    resp = make_client(model=model).post("/generate", json={"prompt": "A counter"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["attempts"] == 2
    assert body["abi"] == COUNTER_ABI
    assert body["source"] == COUNTER.strip()


def test_generate_exhausted(make_client):
    model = ScriptedModel(default=COUNTER.replace("count;", "count BROKEN"))

    resp = make_client(model=model).post("/generate", json={"prompt": "A counter"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Contract compilation failed"
    assert body["attempts"] == 3
    assert body["errors"]
    assert "BROKEN" in body["source"]
    assert "abi" not in body


def test_generate_fatal_is_500(make_client):
    client = make_client(model=ScriptedModel(COUNTER), handler=solc_output(contracts={}))

    resp = client.post("/generate", json={"prompt": "A counter"})

    assert resp.status_code == 500
    assert set(resp.json()) == {"error", "details"}


def test_refine_requires_source_and_prompt(make_client):
    client = make_client()

    assert client.post("/refine", json={"prompt": "x"}).status_code == 400
    assert client.post("/refine", json={"source": COUNTER}).status_code == 400


def test_refine_applies_edits(make_client):
    edits = json.dumps([{"find": "count += 1;", "replace": "count += 5;"}])

    resp = make_client(model=ScriptedModel(edits)).post("/refine", json={"source": COUNTER, "prompt": "Step by five"})

    assert resp.status_code == 200
    assert "count += 5;" in resp.json()["source"]
    assert resp.json()["attempts"] == 1


# ============================================================================
# DOCUMENTATION / DIAGRAM
# ============================================================================

def test_documentation_requires_abi(make_client):
    resp = make_client().post("/generate/documentation", json={"source": COUNTER})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Valid contract ABI is required"


def test_documentation_retries_with_backoff(make_client):
    sleeps = []
    model = ScriptedModel(ModelCallError("down"), ModelCallError("down"), model_reply)
    client = make_client(model=model, sleeps=sleeps, endpoint_backoff_seconds=1.0)

    resp = client.post("/generate/documentation", json={"source": COUNTER, "abi": COUNTER_ABI[1:]})

    assert resp.status_code == 200
    assert resp.json()["attempts"] == 3
    assert resp.json()["functionAnalyses"]["increment"]["description"] == "increment docs"
    assert sleeps == [1.0, 2.0]


def test_documentation_total_failure_is_500(make_client):
    sleeps = []
    client = make_client(model=ScriptedModel(default=ModelCallError("down")), sleeps=sleeps)

    resp = client.post("/generate/documentation", json={"source": COUNTER, "abi": COUNTER_ABI})

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Failed to generate documentation"
    assert body["attempts"] == 3
    assert len(sleeps) == 2


def test_diagram_uses_described_functions(make_client):
    model = ScriptedModel(default=model_reply)
    descriptions = {"increment": {"description": "adds one"}, "error": "previous failure"}

    resp = make_client(model=model).post("/generate/diagram", json={
        "source": COUNTER,
        "abi": COUNTER_ABI,
        "functionDescriptions": descriptions,
    })

    assert resp.status_code == 200
    body = resp.json()
    assert body["attempts"] == 1
    assert list(body["diagramData"]["functionDiagrams"]) == ["increment"]
    assert [n["id"] for n in body["diagramData"]["nodes"]] == ["contract", "fn-increment"]
    assert "adds one" in model.prompts[-1]


def test_diagram_without_edges_is_500(make_client):
    client = make_client(model=ScriptedModel(default="no diagrams today"))

    resp = client.post("/generate/diagram", json={"source": COUNTER, "abi": COUNTER_ABI})

    assert resp.status_code == 500
    assert resp.json()["error"] == "Failed to generate diagram"
    assert resp.json()["attempts"] == 3
