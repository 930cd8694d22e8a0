"""
Compile Service - flatten, resolve the contract name and compile inside an isolated temp directory
"""

import logging
import os
import shutil
import tempfile
import time
import uuid
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from pipeline_settings import Settings
from .compiler import SolcCompiler, compile_source, extract_contract_name
from .flattener import HardhatFlattener
from .models import CompileResult

logger = logging.getLogger(__name__)

Flattener = Callable[[str, str, Optional[str]], str]


@contextmanager
def temporary_contract_file(base_dir: Optional[str] = None) -> Iterator[str]:
    """
    Yield a unique ``TempContract_<ms>_<rand>.sol`` path inside a fresh directory.

    The directory (and everything the flattener writes next to the file) is
    removed on every exit path.
    """
    millis = int(time.time() * 1000)
    if base_dir:
        os.makedirs(base_dir, exist_ok=True)
    workdir = tempfile.mkdtemp(prefix=f"contract_{millis}_", dir=base_dir)
    try:
        yield os.path.join(workdir, f"TempContract_{millis}_{uuid.uuid4().hex[:8]}.sol")
    finally:
        try:
            shutil.rmtree(workdir)
        except OSError as e:
            logger.warning("Failed to clean up temporary files in %s: %s", workdir, e)


class CompilerService:
    """Compiles raw (possibly import-bearing) Solidity source"""

    def __init__(
        self,
        settings: Settings,
        compiler: SolcCompiler,
        flattener: Optional[Flattener] = None,
    ):
        self.settings = settings
        self.compiler = compiler
        self.flattener = flattener or HardhatFlattener(settings)

    @classmethod
    def from_settings(cls, settings: Settings, install: bool = True) -> "CompilerService":
        return cls(settings, SolcCompiler.resolve(settings, install=install))

    def compile_solidity(
        self,
        source: str,
        contract_name: Optional[str] = None,
        original_path: Optional[str] = None,
    ) -> CompileResult:
        """
        Flatten, extract the contract name when none is given, and compile.

        Raises:
            FatalCompilerStateError: no errors but no contracts in the output
        """
        with temporary_contract_file(self.settings.contracts_dir) as temp_path:
            flattened = self.flattener(source, temp_path, original_path)

        name = contract_name or extract_contract_name(source)
        logger.info("Compiling contract %s with solc %s", name, self.compiler.version)
        result = compile_source(flattened, name, self.compiler)
        result.flattened_source = flattened
        return result
