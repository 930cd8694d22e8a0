"""
Pipeline HTTP API
=================

FastAPI surface over compilation, generation/refinement and contract
analysis. Services are resolved once when the app is created; tests inject
their own bundle.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from contract_analyzer import ContractAnalyzer
from contract_generator import ContractGenerator, GeneratedContractResult
from llm_client import ModelCaller, ModelClient
from pipeline_settings import Settings, load_settings
from solidity_compiler import CompilerService
from .schemas import CompileRequest, DiagramRequest, DocumentationRequest, GenerateRequest, RefineRequest

logger = logging.getLogger(__name__)

SOURCE_REQUIRED = {
    "error": "Valid source code is required",
    "details": "Please provide the complete source code of the contract",
}
ABI_REQUIRED = {
    "error": "Valid contract ABI is required",
    "details": "Please provide the contract ABI for accurate function analysis",
}


@dataclass
class PipelineServices:
    """Everything a request handler needs"""
    settings: Settings
    model: ModelCaller
    compiler_service: CompilerService
    sleep: Callable[[float], None] = field(default=time.sleep)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, install: bool = True) -> "PipelineServices":
        settings = settings or load_settings()
        return cls(
            settings=settings,
            model=ModelClient(settings),
            compiler_service=CompilerService.from_settings(settings, install=install),
        )

    def generator(self) -> ContractGenerator:
        return ContractGenerator(self.model, self.compiler_service, self.settings)

    def analyzer(self) -> ContractAnalyzer:
        return ContractAnalyzer(self.model, self.settings)


def _blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


def _generation_response(result: GeneratedContractResult) -> JSONResponse:
    if result.success:
        return JSONResponse(status_code=200, content=result.to_dict())
    return JSONResponse(status_code=400, content={"error": "Contract compilation failed", **result.to_dict()})


def _with_retries(
    services: PipelineServices,
    label: str,
    run: Callable[[], Any],
    is_valid: Callable[[Any], bool],
) -> Tuple[Any, int, Optional[str]]:
    """
    Run ``run`` until it returns a valid result.

    Returns:
        (result or None, attempts made, last error message)
    """
    max_retries = services.settings.endpoint_max_retries
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            result = run()
            if is_valid(result):
                return result, attempt, None
            last_error = f"{label} produced no usable output"
            logger.warning("%s attempt %d/%d produced no usable output", label, attempt, max_retries)
        except Exception as e:
            logger.exception("%s attempt %d/%d failed", label, attempt, max_retries)
            last_error = str(e)

        if attempt < max_retries:
            services.sleep(services.settings.endpoint_backoff_seconds * attempt)

    return None, max_retries, last_error


def create_app(services: Optional[PipelineServices] = None) -> FastAPI:
    """Build the API; ``services`` defaults to the configured real stack."""
    services = services or PipelineServices.from_settings()

    app = FastAPI(title="Smart Contract Pipeline")
    app.state.services = services

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allow all origins for dev
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": str(exc)})

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.post("/compile")
    def compile_contract(req: CompileRequest):
        if _blank(req.source):
            return JSONResponse(status_code=400, content={"error": "Source code is required"})

        try:
            result = services.compiler_service.compile_solidity(req.source, req.contractName)
        except Exception as e:
            logger.exception("Compilation request failed")
            return JSONResponse(status_code=500, content={"error": str(e)})

        warnings = [w.to_dict() for w in result.warnings]
        if not result.success:
            return JSONResponse(status_code=400, content={
                "errors": [e.to_dict() for e in result.errors],
                "warnings": warnings,
            })

        body = {"abi": result.abi, "bytecode": result.bytecode, "warnings": warnings}
        if req.analyze:
            try:
                body.update(services.analyzer().analyze_contract(req.source, result.abi).to_dict())
            except Exception:
                logger.exception("Analysis after compilation failed")
                body.update({"functionAnalyses": None, "diagramData": None})
        return body

    @app.post("/generate")
    def generate(req: GenerateRequest):
        if _blank(req.prompt):
            return JSONResponse(status_code=400, content={"error": "Prompt is required"})

        try:
            result = services.generator().generate_contract(req.prompt)
        except Exception as e:
            logger.exception("Contract generation failed")
            return JSONResponse(status_code=500, content={"error": "Failed to generate contract", "details": str(e)})
        return _generation_response(result)

    @app.post("/refine")
    def refine(req: RefineRequest):
        if _blank(req.source):
            return JSONResponse(status_code=400, content={"error": "Source code is required"})
        if _blank(req.prompt):
            return JSONResponse(status_code=400, content={"error": "Prompt is required"})

        try:
            result = services.generator().refine_contract(req.source, req.prompt)
        except Exception as e:
            logger.exception("Contract refinement failed")
            return JSONResponse(status_code=500, content={"error": "Failed to refine contract", "details": str(e)})
        return _generation_response(result)

    @app.post("/generate/documentation")
    def generate_documentation(req: DocumentationRequest):
        if _blank(req.source):
            return JSONResponse(status_code=400, content=SOURCE_REQUIRED)
        if req.abi is None:
            return JSONResponse(status_code=400, content=ABI_REQUIRED)

        analyzer = services.analyzer()
        result, attempts, error = _with_retries(
            services,
            "documentation",
            lambda: analyzer.analyze_functions(req.source, req.abi),
            lambda r: not r.total_failure,
        )
        if result is None:
            return JSONResponse(status_code=500, content={
                "error": "Failed to generate documentation",
                "details": error,
                "attempts": attempts,
            })
        return {**result.to_dict(), "attempts": attempts}

    @app.post("/generate/diagram")
    def generate_diagram(req: DiagramRequest):
        if _blank(req.source):
            return JSONResponse(status_code=400, content=SOURCE_REQUIRED)
        if req.abi is None:
            return JSONResponse(status_code=400, content=ABI_REQUIRED)

        names = list(req.functionDescriptions) if req.functionDescriptions else None
        analyzer = services.analyzer()
        result, attempts, error = _with_retries(
            services,
            "diagram",
            lambda: analyzer.generate_diagrams(req.source, req.abi, function_names=names,
                                               descriptions=req.functionDescriptions),
            lambda r: r.valid,
        )
        if result is None:
            return JSONResponse(status_code=500, content={
                "error": "Failed to generate diagram",
                "details": error,
                "attempts": attempts,
            })
        return {"diagramData": result.to_dict(), "attempts": attempts}

    return app
