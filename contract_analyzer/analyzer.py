"""
Contract Analyzer
=================

Documents a compiled contract function by function and draws Mermaid
sequence diagrams for it. Functions are processed in batches of five; a
failing batch costs only its own functions.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from llm_client import call_llm, extract_json
from llm_client.client import ModelCaller
from pipeline_settings import Settings
from solidity_compiler.compiler import extract_contract_name
from .batching import function_names_from_abi, run_batches, split_into_batches
from .models import (
    ContractAnalysis,
    DiagramAnalysisResult,
    DiagramItem,
    FunctionAnalysis,
    FunctionAnalysisResult,
    strip_reserved,
)
from .prompts import (
    FUNCTION_ANALYSIS_SYSTEM,
    FUNCTION_DIAGRAM_BATCH_SYSTEM,
    GENERAL_DIAGRAM_SYSTEM,
    function_analysis_prompt,
    function_diagram_prompt,
    general_diagram_prompt,
)

logger = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE = 0.1

# Overview graph layout
NODES_PER_ROW = 4
NODE_SPACING_X = 240
NODE_SPACING_Y = 140


def build_flow_graph(contract_name: str, function_diagrams: Dict[str, DiagramItem]) -> Dict[str, List[Dict]]:
    """
    ReactFlow-style overview: the contract on top, one node per diagrammed
    function below it, one contract -> function edge each.
    """
    nodes = [{
        "id": "contract",
        "type": "contract",
        "data": {"label": contract_name},
        "position": {"x": 0, "y": 0},
    }]
    edges = []

    for i, (name, diagram) in enumerate(function_diagrams.items()):
        node_id = f"fn-{name}"
        nodes.append({
            "id": node_id,
            "type": "function",
            "data": {"label": name, "explanation": diagram.explanation},
            "position": {
                "x": (i % NODES_PER_ROW) * NODE_SPACING_X,
                "y": NODE_SPACING_Y * (1 + i // NODES_PER_ROW),
            },
        })
        edges.append({
            "id": f"contract-{node_id}",
            "source": "contract",
            "target": node_id,
            "label": name,
        })

    return {"nodes": nodes, "edges": edges}


class ContractAnalyzer:
    """Batched documentation and diagram generation"""

    def __init__(self, model: ModelCaller, settings: Settings, log: Optional[Callable[[str], None]] = None):
        self.model = model
        self.settings = settings
        self.log = log or logger.info

    def analyze_functions(
        self,
        source: str,
        abi: List[Dict[str, Any]],
    ) -> FunctionAnalysisResult:
        """Per-function description, source, example and security notes."""
        names = function_names_from_abi(abi)
        self.log(f"Analyzing {len(names)} function(s)")

        batches = split_into_batches(names, self.settings.analysis_batch_size)
        acc = run_batches(
            batches,
            lambda batch: [
                {"role": "system", "content": FUNCTION_ANALYSIS_SYSTEM},
                {"role": "user", "content": function_analysis_prompt(source, abi, batch.member_names)},
            ],
            self.model,
            FunctionAnalysis.from_dict,
            label="function analysis",
            log=self.log,
            temperature=ANALYSIS_TEMPERATURE,
        )

        result = FunctionAnalysisResult(
            function_analyses=acc.entries,
            requested_names=names,
            overall_success=acc.overall_success,
            failed_batches=acc.failed_batches,
            total_batches=acc.total_batches,
        )
        self.log(
            f"Function analysis finished: {len(acc.entries)}/{len(names)} documented, "
            f"{len(acc.failed_batches)}/{acc.total_batches} batch(es) failed"
        )
        return result

    def generate_diagrams(
        self,
        source: str,
        abi: List[Dict[str, Any]],
        function_names: Optional[List[str]] = None,
        descriptions: Optional[Dict[str, Any]] = None,
    ) -> DiagramAnalysisResult:
        """
        General diagram plus one diagram per function.

        Args:
            source: Contract source
            abi: Contract ABI
            function_names: Functions to diagram (default: every ABI function)
            descriptions: Known documentation per function, added to the prompt
        """
        if function_names is None:
            function_names = function_names_from_abi(abi)
        names = strip_reserved(dict.fromkeys(function_names))

        general = self._general_diagram(source, abi)

        batches = split_into_batches(names, self.settings.analysis_batch_size)
        acc = run_batches(
            batches,
            lambda batch: [
                {"role": "system", "content": FUNCTION_DIAGRAM_BATCH_SYSTEM},
                {"role": "user", "content": function_diagram_prompt(source, abi, batch.member_names, descriptions)},
            ],
            self.model,
            DiagramItem.from_dict,
            label="function diagrams",
            log=self.log,
            temperature=ANALYSIS_TEMPERATURE,
        )

        graph = build_flow_graph(extract_contract_name(source), acc.entries)
        self.log(f"Diagrams finished: {len(acc.entries)}/{len(names)} function diagram(s)")

        return DiagramAnalysisResult(
            general_diagram=general,
            function_diagrams=acc.entries,
            nodes=graph["nodes"],
            edges=graph["edges"],
            overall_success=acc.overall_success and general is not None,
            failed_batches=acc.failed_batches,
            total_batches=acc.total_batches,
        )

    def analyze_contract(self, source: str, abi: List[Dict[str, Any]]) -> ContractAnalysis:
        """Documentation first, then diagrams for the documented functions."""
        functions = self.analyze_functions(source, abi)

        names = list(functions.function_analyses) or None
        descriptions = {n: fa.description for n, fa in functions.function_analyses.items()}
        diagrams = self.generate_diagrams(source, abi, function_names=names, descriptions=descriptions)

        return ContractAnalysis(functions=functions, diagrams=diagrams)

    def _general_diagram(self, source: str, abi: List[Dict[str, Any]]) -> Optional[DiagramItem]:
        context = "general diagram"
        text = call_llm(
            self.model,
            [
                {"role": "system", "content": GENERAL_DIAGRAM_SYSTEM},
                {"role": "user", "content": general_diagram_prompt(source, abi)},
            ],
            context=context,
            log=self.log,
            temperature=ANALYSIS_TEMPERATURE,
        )
        if text is None:
            return None

        parsed = extract_json(text, expect="object", context=context, log=self.log)
        if parsed is None:
            self.log(f"[{context}] could not extract a JSON object")
            return None

        item = DiagramItem.from_dict(parsed.get("generalDiagram", parsed))
        if item is None:
            self.log(f"[{context}] response has no usable mermaidCode")
        return item
