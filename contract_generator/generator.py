"""
Contract Generator
==================

Drives the bounded generate-compile-repair loop for one contract, either
drafted from a prose description or refined from existing source.

Each attempt produces a candidate (draft or repair), compiles it, and feeds
the outcome to the state machine. Compiler diagnostics become the next
corrective instruction until the attempt budget runs out.
"""

import logging
from typing import Callable, List, Optional

from llm_client import ExtractionStrategy, call_llm, extract_json_outcome
from llm_client.client import Messages, ModelCaller
from pipeline_settings import Settings
from solidity_compiler.compiler import DEFAULT_CONTRACT_NAME, extract_contract_name
from solidity_compiler.models import Diagnostic, FatalCompilerStateError
from solidity_compiler.service import CompilerService
from .models import (
    AttemptOutcome,
    GeneratedContractResult,
    GenerationAttempt,
    GenerationState,
)
from .repair import (
    apply_find_replace,
    build_correction_prompt,
    build_refine_prompt,
    strip_markdown_fences,
    valid_patch_list,
)
from .state_machine import GenerationEvent, next_state
from .templates import correction_context, generation_context, refine_context

logger = logging.getLogger(__name__)


class ContractGenerator:
    """Generate or refine a contract until it compiles or the budget is spent"""

    def __init__(
        self,
        model: ModelCaller,
        compiler_service: CompilerService,
        settings: Settings,
        log: Optional[Callable[[str], None]] = None,
    ):
        self.model = model
        self.compiler_service = compiler_service
        self.settings = settings
        self.log = log or logger.info

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate_contract(self, prompt: str) -> GeneratedContractResult:
        """Draft a new contract from a prose description."""
        self.log(f"Starting contract generation ({len(prompt)} chars of prompt)")

        def draft() -> Messages:
            return [
                {"role": "system", "content": generation_context(self.settings.solc_version)},
                {"role": "user", "content": prompt},
            ]

        return self._run(intent=prompt, mode="generation", draft_messages=draft)

    def refine_contract(self, source: str, prompt: str) -> GeneratedContractResult:
        """Apply a modification request to existing source."""
        contract_name = extract_contract_name(source)
        self.log(f"Starting contract refinement of {contract_name}")

        def draft() -> Messages:
            return [
                {"role": "system", "content": refine_context(self.settings.solc_version)},
                {"role": "user", "content": build_refine_prompt(source, prompt)},
            ]

        return self._run(
            intent=prompt,
            mode="refinement",
            draft_messages=draft,
            base_source=source,
            contract_name=None if contract_name == DEFAULT_CONTRACT_NAME else contract_name,
        )

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _candidate_from_response(self, text: str, base_source: Optional[str]) -> str:
        """Full source, or find/replace patches applied to ``base_source``."""
        if base_source is not None:
            outcome = extract_json_outcome(text, expect="array", context="refinement patches", log=self.log)
            if not outcome.failure:
                pairs = valid_patch_list(outcome.value)
                if pairs:
                    self.log(f"Received {len(pairs)} find/replace edits")
                    return apply_find_replace(base_source, pairs, log=self.log)
                # A bare "[]" means no edits; "[]" found inside Solidity code does not
                if outcome.value == [] and outcome.strategy == ExtractionStrategy.DIRECT:
                    self.log("Model returned no edits; keeping current source")
                    return base_source
        return strip_markdown_fences(text)

    def _run(
        self,
        intent: str,
        mode: str,
        draft_messages: Callable[[], Messages],
        base_source: Optional[str] = None,
        contract_name: Optional[str] = None,
    ) -> GeneratedContractResult:
        max_attempts = self.settings.max_generation_attempts
        state = GenerationState.DRAFTING
        candidate: Optional[str] = None
        compile_errors: List[Diagnostic] = []
        final_errors: List[Diagnostic] = []
        warnings: List[Diagnostic] = []
        history: List[GenerationAttempt] = []
        attempt_number = 0

        while not state.terminal:
            attempt_number += 1
            attempt = GenerationAttempt(attempt_number)
            label = f"{mode} attempt {attempt_number}"
            self.log(f"[{label}/{max_attempts}] {state.value}")

            # 1. Produce a candidate
            if state == GenerationState.DRAFTING:
                messages = draft_messages()
                base = base_source
            else:
                self.log(f"[{label}] issuing corrective call for {len(compile_errors)} error(s)")
                messages = [
                    {"role": "system", "content": correction_context(self.settings.solc_version)},
                    {"role": "user", "content": build_correction_prompt(intent, candidate, compile_errors)},
                ]
                base = candidate

            text = call_llm(self.model, messages, context=label, log=self.log)
            failure = None
            if text is None:
                failure = f"Model call failed during {label}"
            else:
                try:
                    derived = self._candidate_from_response(text, base)
                except Exception as e:
                    logger.exception("Could not derive a candidate during %s", label)
                    failure = f"Could not derive a candidate during {label}: {type(e).__name__}: {e}"

            if failure is not None:
                attempt.diagnostics = [Diagnostic.error(failure)]
                final_errors = attempt.diagnostics
                state = next_state(state, GenerationEvent.CALL_FAILED, attempt_number, max_attempts,
                                   has_candidate=candidate is not None)
                attempt.outcome = self._outcome(state)
                history.append(attempt)
                self.log(f"[{label}] no candidate produced -> {state.value}")
                continue

            candidate = derived
            attempt.source_text = candidate
            extracted = extract_contract_name(candidate)
            if extracted != DEFAULT_CONTRACT_NAME and extracted != contract_name:
                if contract_name:
                    self.log(f"[{label}] contract renamed {contract_name} -> {extracted}")
                contract_name = extracted
            state = next_state(state, GenerationEvent.CANDIDATE_READY, attempt_number, max_attempts, True)

            # 2. Compile it
            try:
                result = self.compiler_service.compile_solidity(candidate, contract_name)
                attempt.diagnostics = list(result.errors)
                warnings = list(result.warnings)
            except FatalCompilerStateError:
                raise
            except Exception as e:
                logger.exception("Error during %s compilation", label)
                attempt.diagnostics = [Diagnostic.error(f"Compilation error: {e}")]
                warnings = []
                result = None

            if not attempt.diagnostics:
                state = next_state(state, GenerationEvent.COMPILED_CLEAN, attempt_number, max_attempts, True)
                attempt.outcome = AttemptOutcome.SUCCESS
                history.append(attempt)
                self.log(f"[{label}] compiled successfully ({len(warnings)} warning(s))")
                return GeneratedContractResult.succeeded(
                    source=candidate,
                    abi=result.abi,
                    bytecode=result.bytecode,
                    warnings=warnings,
                    attempts_used=attempt_number,
                    max_attempts=max_attempts,
                    contract_name=result.contract_name,
                    history=history,
                )

            compile_errors = final_errors = attempt.diagnostics
            state = next_state(state, GenerationEvent.COMPILED_WITH_ERRORS, attempt_number, max_attempts, True)
            attempt.outcome = self._outcome(state)
            history.append(attempt)
            self.log(f"[{label}] {len(compile_errors)} compilation error(s) -> {state.value}")

        self.log(f"Maximum number of attempts reached with errors ({mode})")
        return GeneratedContractResult.failed(
            source=candidate if candidate is not None else (base_source or ""),
            errors=final_errors,
            warnings=warnings,
            attempts_used=attempt_number,
            max_attempts=max_attempts,
            contract_name=contract_name,
            history=history,
        )

    @staticmethod
    def _outcome(state: GenerationState) -> AttemptOutcome:
        if state == GenerationState.EXHAUSTED:
            return AttemptOutcome.TERMINAL_FAILURE
        return AttemptOutcome.RETRYABLE_FAILURE
