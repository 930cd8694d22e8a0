"""Request bodies for the pipeline HTTP API"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class CompileRequest(BaseModel):
    source: Optional[str] = None
    contractName: Optional[str] = None
    analyze: bool = False


class GenerateRequest(BaseModel):
    prompt: Optional[str] = None


class RefineRequest(BaseModel):
    source: Optional[str] = None
    prompt: Optional[str] = None


class DocumentationRequest(BaseModel):
    source: Optional[str] = None
    abi: Optional[List[Dict[str, Any]]] = None


class DiagramRequest(BaseModel):
    source: Optional[str] = None
    abi: Optional[List[Dict[str, Any]]] = None
    # name -> documentation, as returned by /generate/documentation
    functionDescriptions: Optional[Dict[str, Any]] = None
