# contract_analyzer/prompts.py
"""Prompts for per-function documentation and Mermaid sequence diagrams"""

import json
from typing import Any, Dict, List, Optional

FUNCTION_ANALYSIS_SYSTEM = """You are a smart contract auditor writing developer documentation.

For EACH requested function produce:
- description: what the function does, its parameters and return values
- source: the exact Solidity source of the function, copied from the contract
- example: a short ethers.js or Solidity snippet showing a typical call
- security: a list of notes, each {"type": "info" | "warning" | "error", "message": "..."}
  * error   - exploitable issue (reentrancy, missing access control, unchecked call)
  * warning - risky pattern or missing validation
  * info    - relevant but harmless observation

RESPONSE FORMAT:
- ONLY a JSON object, no markdown, no commentary
- Keys are EXACTLY the requested function names, nothing else
{
  "functionName": {
    "description": "...",
    "source": "...",
    "example": "...",
    "security": [{"type": "info", "message": "..."}]
  }
}"""

MERMAID_RULES = """MERMAID RULES (the diagram is rendered by a strict parser):
1. First line is exactly: sequenceDiagram
2. Declare every participant first: participant User, participant Contract, ...
3. Only these arrows: ->> for calls, -->> for returns
4. Every message has text after the colon; return messages are never empty
5. No activate/deactivate, no notes spanning participants, no semicolons
6. Use alt/else/end only for require or revert branches
7. No markdown fences inside mermaidCode; escape newlines as \\n in JSON"""

GENERAL_DIAGRAM_SYSTEM = f"""You document smart contracts with Mermaid sequence diagrams.

Draw ONE diagram of the contract's main user flow across its public functions,
showing the actors (users, owner, external contracts) and the contract.

{MERMAID_RULES}

RESPONSE FORMAT:
- ONLY a JSON object, no markdown, no commentary
{{"generalDiagram": {{"mermaidCode": "sequenceDiagram\\n...", "explanation": "..."}}}}"""

FUNCTION_DIAGRAM_BATCH_SYSTEM = f"""You document smart contracts with Mermaid sequence diagrams.

Draw ONE diagram per requested function showing the caller, the contract,
state changes, emitted events and external calls made by that function.

{MERMAID_RULES}

RESPONSE FORMAT:
- ONLY a JSON object, no markdown, no commentary
- Keys are EXACTLY the requested function names, nothing else
{{"functionName": {{"mermaidCode": "sequenceDiagram\\n...", "explanation": "..."}}}}"""


def _contract_block(source: str, abi: List[Dict[str, Any]]) -> str:
    return (
        f"CONTRACT SOURCE:\n```solidity\n{source}\n```\n\n"
        f"CONTRACT ABI:\n```json\n{json.dumps(abi, indent=2)}\n```"
    )


def function_analysis_prompt(source: str, abi: List[Dict[str, Any]], names: List[str]) -> str:
    return (
        f"{_contract_block(source, abi)}\n\n"
        f"Document ONLY these functions: {json.dumps(names)}"
    )


def general_diagram_prompt(source: str, abi: List[Dict[str, Any]]) -> str:
    return f"{_contract_block(source, abi)}\n\nDraw the general diagram for this contract."


def function_diagram_prompt(
    source: str,
    abi: List[Dict[str, Any]],
    names: List[str],
    descriptions: Optional[Dict[str, Any]] = None,
) -> str:
    prompt = f"{_contract_block(source, abi)}\n\nDraw diagrams ONLY for these functions: {json.dumps(names)}"
    if descriptions:
        known = {n: descriptions[n] for n in names if n in descriptions}
        if known:
            prompt += f"\n\nExisting function documentation:\n{json.dumps(known, indent=2)}"
    return prompt
