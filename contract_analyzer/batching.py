"""
Batch runner
============

Splits a function-name list into fixed-size batches and runs one model call
per batch, strictly in order. A failed batch is logged and recorded on the
accumulator; the remaining batches still run and earlier entries are kept.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from llm_client import call_llm, extract_json
from llm_client.client import Messages, ModelCaller
from .models import AnalysisBatch, BatchMergeAccumulator, strip_reserved

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5


def function_names_from_abi(abi: Optional[Sequence[Dict[str, Any]]]) -> List[str]:
    """Function names in ABI order; overloads collapse to one name."""
    names: List[str] = []
    seen = set()
    for entry in abi or []:
        if not isinstance(entry, dict) or entry.get("type") != "function":
            continue
        name = entry.get("name")
        if isinstance(name, str) and name and name not in seen:
            seen.add(name)
            names.append(name)
    return strip_reserved(names)


def split_into_batches(names: Sequence[str], size: int = DEFAULT_BATCH_SIZE) -> List[AnalysisBatch]:
    if size < 1:
        raise ValueError("batch size must be positive")
    chunks = [list(names[i:i + size]) for i in range(0, len(names), size)]
    return [AnalysisBatch(index=i, member_names=chunk, total=len(chunks)) for i, chunk in enumerate(chunks)]


def run_batches(
    batches: List[AnalysisBatch],
    build_messages: Callable[[AnalysisBatch], Messages],
    model: ModelCaller,
    expect_record: Callable[[Any], Optional[Any]],
    label: str,
    log: Optional[Callable[[str], None]] = None,
    **call_options: Any
) -> BatchMergeAccumulator:
    """
    Run every batch and merge the validated records.

    Args:
        batches: Batches in processing order
        build_messages: Conversation for one batch
        model: Model caller
        expect_record: Validates one raw record; returns None to drop it
        label: Phase label for logs (e.g. "function analysis")
        log: Optional sink
        **call_options: Passed through to the model call

    Returns:
        BatchMergeAccumulator with the entries of every successful batch
    """
    emit = log or logger.info
    acc = BatchMergeAccumulator(total_batches=len(batches))

    for batch in batches:
        context = f"{label} {batch.label}"
        emit(f"[{context}] start: {', '.join(batch.member_names)}")
        try:
            text = call_llm(model, build_messages(batch), context=context, log=emit, **call_options)
            if text is None:
                raise _BatchFailed("no response from model")

            parsed = extract_json(text, expect="object", context=context, log=emit)
            if parsed is None:
                raise _BatchFailed("could not extract a JSON object")

            records = {}
            for name in batch.member_names:
                record = expect_record(parsed.get(name))
                if record is not None:
                    records[name] = record
                else:
                    emit(f"[{context}] missing or invalid record for {name}")

            merged = acc.merge(batch, records)
            if merged == 0:
                raise _BatchFailed("no requested function in response")
        except _BatchFailed as e:
            emit(f"[{context}] failed: {e}")
            acc.mark_failed(batch)
            continue
        except Exception as e:
            logger.exception("Unexpected error in %s", context)
            emit(f"[{context}] failed: {type(e).__name__}: {e}")
            acc.mark_failed(batch)
            continue

        emit(f"[{context}] done: merged {merged}/{len(batch.member_names)}")

    return acc


class _BatchFailed(Exception):
    pass
