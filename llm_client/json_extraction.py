"""
Structured Response Extraction
==============================

Recovers one JSON value from free-form model output through an ordered chain
of strategies. The first strategy that yields a value of the expected shape
wins; no strategy raises.

    1. direct           - parse the trimmed text as-is
    2. fenced-block     - parse the interior of a ```json / ``` block
    3. bracketed-array  - parse a top-level [ {...}, ... ] span (arrays only)
    4. delimiter-scan   - parse between the first opening and last closing delimiter
    5. full-sanitize    - sanitize the whole text and parse once more

Stages 2-4 retry their candidate through ``sanitize_json_text`` before
falling through.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

FENCED_BLOCK_RE = re.compile(r"```(?:json|JSON)?[ \t]*\r?\n?([\s\S]*?)\r?\n?[ \t]*```")
CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")

_VALID_ESCAPES = set('"\\/bfnrtu')
_IN_STRING_REPLACEMENTS = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


class ExtractionStrategy(Enum):
    """Strategies in the order they are attempted"""
    DIRECT = "direct"
    FENCED_BLOCK = "fenced-block"
    BRACKETED_ARRAY = "bracketed-array"
    DELIMITER_SCAN = "delimiter-scan"
    FULL_SANITIZE = "full-sanitize"


@dataclass(frozen=True)
class ExtractionOutcome:
    """Result of one extraction call"""
    strategy: Optional[ExtractionStrategy] = None
    value: Any = None
    sanitized: bool = False

    @property
    def failure(self) -> bool:
        return self.strategy is None

    @classmethod
    def failed(cls) -> "ExtractionOutcome":
        return cls()


def _remove_trailing_commas(text: str) -> str:
    prev = None
    while prev != text:
        prev = text
        text = TRAILING_COMMA_RE.sub(r"\1", text)
    return text


def sanitize_json_text(text: str) -> str:
    """
    Repair the defects models most often introduce into JSON.

    - strips ASCII control characters other than TAB/CR/LF
    - escapes literal TAB/CR/LF inside string literals
    - turns stray \\" outside string literals into plain quotes
    - doubles backslashes that do not start a valid escape inside strings
    - removes trailing commas before } and ]
    """
    text = CONTROL_CHARS_RE.sub("", text)

    out: List[str] = []
    in_str = False
    # String opened by a stray \" closes on the next \"
    escaped_quotes = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""
        if in_str:
            if ch == "\\":
                if escaped_quotes and nxt == '"':
                    out.append('"')
                    in_str = escaped_quotes = False
                    i += 2
                    continue
                if nxt and nxt in _VALID_ESCAPES:
                    out.append(ch + nxt)
                    i += 2
                    continue
                out.append("\\\\")
            elif ch == '"':
                in_str = False
                out.append(ch)
            elif ch in _IN_STRING_REPLACEMENTS:
                out.append(_IN_STRING_REPLACEMENTS[ch])
            else:
                out.append(ch)
        elif ch == "\\" and nxt == '"':
            out.append('"')
            in_str = escaped_quotes = True
            i += 2
            continue
        else:
            if ch == '"':
                in_str = True
            out.append(ch)
        i += 1

    return _remove_trailing_commas("".join(out))


def _shape_matches(value: Any, expect: Optional[str]) -> bool:
    if expect == "object":
        return isinstance(value, dict)
    if expect == "array":
        return isinstance(value, list)
    return True


def _try_parse(candidate: str, expect: Optional[str]) -> Tuple[bool, Any]:
    try:
        value = json.loads(candidate)
    except (ValueError, TypeError, RecursionError):
        return False, None
    if not _shape_matches(value, expect):
        return False, None
    return True, value


def _try_raw_then_sanitized(candidate: str, expect: Optional[str]) -> Tuple[bool, Any, bool]:
    candidate = candidate.strip()
    if not candidate:
        return False, None, False
    ok, value = _try_parse(candidate, expect)
    if ok:
        return True, value, False
    ok, value = _try_parse(sanitize_json_text(candidate), expect)
    return ok, value, ok


def _object_array_spans(text: str) -> List[str]:
    """
    Top-level ``[ {...}, ... ]`` spans, found in one pass.

    Brackets inside string literals are ignored. An array that is never
    closed (a truncated reply) yields nothing.
    """
    spans = []
    stack: List[str] = []
    start = -1
    in_str = False
    escaped = False
    for i, ch in enumerate(text):
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"' and stack:
            in_str = True
        elif ch in "[{":
            if not stack:
                start = i if ch == "[" else -1
            stack.append(ch)
        elif ch in "]}":
            if stack and stack[-1] == ("[" if ch == "]" else "{"):
                stack.pop()
                if not stack and start != -1:
                    if text[start + 1:i].lstrip().startswith("{"):
                        spans.append(text[start:i + 1])
                    start = -1
    return spans


def _delimiter_spans(text: str, expect: Optional[str]) -> List[str]:
    """First-opening to last-closing spans, in preference order."""
    pairs = {"array": ("[", "]"), "object": ("{", "}")}
    if expect == "object":
        order = ["object", "array"]
    elif expect == "array":
        order = ["array", "object"]
    else:
        first_arr = text.find("[")
        first_obj = text.find("{")
        if first_obj != -1 and (first_arr == -1 or first_obj < first_arr):
            order = ["object", "array"]
        else:
            order = ["array", "object"]

    spans = []
    for kind in order:
        open_c, close_c = pairs[kind]
        start = text.find(open_c)
        end = text.rfind(close_c)
        if start != -1 and end > start:
            spans.append(text[start:end + 1])
    return spans


def extract_json_outcome(
    raw_text: Optional[str],
    expect: Optional[str] = None,
    context: str = "LLM response",
    log: Optional[Callable[[str], None]] = None,
) -> ExtractionOutcome:
    """
    Run the strategy chain over raw model output.

    Args:
        raw_text: Text that should contain one JSON value
        expect: "object", "array" or None (any JSON value)
        context: Label used in log messages
        log: Optional sink for the chosen strategy

    Returns:
        ExtractionOutcome (``failure`` is True when every strategy failed)
    """
    emit = log or logger.debug
    if not raw_text or not raw_text.strip():
        logger.warning("Cannot parse empty response for %s", context)
        return ExtractionOutcome.failed()

    text = raw_text.strip()

    def done(strategy: ExtractionStrategy, value: Any, sanitized: bool) -> ExtractionOutcome:
        emit(f"[extract] {context}: {strategy.value}{' (sanitized)' if sanitized else ''}")
        return ExtractionOutcome(strategy=strategy, value=value, sanitized=sanitized)

    # 1. Direct
    ok, value = _try_parse(text, expect)
    if ok:
        return done(ExtractionStrategy.DIRECT, value, False)

    # 2. Fenced block
    for match in FENCED_BLOCK_RE.finditer(text):
        ok, value, sanitized = _try_raw_then_sanitized(match.group(1), expect)
        if ok:
            return done(ExtractionStrategy.FENCED_BLOCK, value, sanitized)

    # 3. Bracketed array
    if expect == "array":
        for span in _object_array_spans(text):
            ok, value, sanitized = _try_raw_then_sanitized(span, expect)
            if ok:
                return done(ExtractionStrategy.BRACKETED_ARRAY, value, sanitized)

    # 4. Delimiter scan
    for span in _delimiter_spans(text, expect):
        ok, value, sanitized = _try_raw_then_sanitized(span, expect)
        if ok:
            return done(ExtractionStrategy.DELIMITER_SCAN, value, sanitized)

    # 5. Full sanitize
    ok, value = _try_parse(sanitize_json_text(text), expect)
    if ok:
        return done(ExtractionStrategy.FULL_SANITIZE, value, True)

    logger.warning("All JSON extraction strategies failed for %s. Snippet: %s", context, text[:300])
    return ExtractionOutcome.failed()


def extract_json(
    raw_text: Optional[str],
    expect: Optional[str] = None,
    context: str = "LLM response",
    log: Optional[Callable[[str], None]] = None,
) -> Any:
    """Return the extracted value, or None when extraction failed."""
    outcome = extract_json_outcome(raw_text, expect=expect, context=context, log=log)
    return None if outcome.failure else outcome.value
