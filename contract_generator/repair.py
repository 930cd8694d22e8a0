# contract_generator/repair.py
import logging
import re
from typing import Callable, Dict, List, Optional, Sequence

from solidity_compiler.models import Diagnostic

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:solidity)?|```")


def strip_markdown_fences(solidity_code: str) -> str:
    return FENCE_RE.sub("", solidity_code or "").strip()


def format_diagnostics(diagnostics: Sequence[Diagnostic]) -> str:
    return "\n".join(f"- {d.render()}" for d in diagnostics)


def build_correction_prompt(intent: str, source: str, diagnostics: Sequence[Diagnostic]) -> str:
    return f"""The following Solidity code was generated for the request below:

```solidity
{source}
```

However, the compiler reported the following errors:

{format_diagnostics(diagnostics)}

Please correct these errors and return the **complete, corrected Solidity code**.
Ensure the corrected code still fulfills the original request: "{intent}".
Respond ONLY with the corrected Solidity code, without any explanations or markdown formatting."""


def build_refine_prompt(source: str, instructions: str) -> str:
    return f"""Original contract code:

```solidity
{source}
```

Instructions to modify the contract:
{instructions}

Return the modifications as a JSON array of {{"find": "...", "replace": "..."}} objects,
or the complete modified contract if the change rewrites most of it."""


def valid_patch_list(value) -> Optional[List[Dict[str, str]]]:
    """Return the find/replace pairs when ``value`` is a non-empty list of them."""
    if not isinstance(value, list) or not value:
        return None
    pairs = [
        item for item in value
        if isinstance(item, dict)
        and isinstance(item.get("find"), str)
        and isinstance(item.get("replace"), str)
    ]
    return pairs or None


def apply_find_replace(
    source: str,
    pairs: Sequence[Dict[str, str]],
    log: Optional[Callable[[str], None]] = None,
) -> str:
    """
    Apply literal find/replace edits in order, replacing every occurrence.

    Pairs with an empty or absent ``find`` text are skipped.
    """
    emit = log or logger.warning
    code = source
    applied = 0
    for pair in pairs:
        find, replace = pair.get("find"), pair.get("replace")
        if not isinstance(find, str) or not isinstance(replace, str) or not find:
            emit(f"Skipping invalid refinement pair: {pair!r}")
            continue
        if find not in code:
            emit(f"Skipping refinement: find text not in contract: {find[:80]!r}")
            continue
        code = code.replace(find, replace)
        applied += 1
    logger.info("Applied %d/%d refinement patches", applied, len(pairs))
    return code
