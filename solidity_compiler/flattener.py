"""
Dependency Flattening
=====================

Inlines imports into a single compilation unit by running Hardhat's
``flatten`` task, then normalizes the result to exactly one SPDX line and
one pragma pinned to the configured compiler version. Any flattening
failure falls back to rewriting the pragma of the unflattened source.
"""

import logging
import os
import re
import subprocess
from typing import Optional

from pipeline_settings import OPTIMIZER_RUNS, Settings
from .models import FlatteningError

logger = logging.getLogger(__name__)

SPDX_RE = re.compile(r"// SPDX-License-Identifier: .+")
PRAGMA_RE = re.compile(r"pragma solidity [\^~]?[0-9.]+;")

SPDX_ALREADY_DECLARED = "// SPDX-License-Identifier already declared"
PRAGMA_ALREADY_DECLARED = "// pragma solidity already declared"

HARDHAT_CONFIG_TEMPLATE = """
module.exports = {{
  solidity: {{
    version: "{version}",
    settings: {{
      optimizer: {{
        enabled: true,
        runs: {runs}
      }},
    }},
  }},
  paths: {{
    sources: "./",
    cache: "./cache",
    artifacts: "./artifacts"
  }}
}};
"""


def target_pragma(solc_version: str) -> str:
    return f"pragma solidity {solc_version};"


def normalize_flattened_source(text: str, solc_version: str) -> str:
    """
    Keep one SPDX line and one pragma.

    The first pragma is pinned to ``solc_version``; later SPDX lines and
    pragmas are replaced with marker comments. A source without any pragma
    gets one prepended.
    """
    spdx_seen = [False]

    def _spdx(match):
        if spdx_seen[0]:
            return SPDX_ALREADY_DECLARED
        spdx_seen[0] = True
        return match.group(0)

    processed = SPDX_RE.sub(_spdx, text)

    pragma_seen = [False]

    def _pragma(match):
        if pragma_seen[0]:
            return PRAGMA_ALREADY_DECLARED
        pragma_seen[0] = True
        return target_pragma(solc_version)

    processed = PRAGMA_RE.sub(_pragma, processed)
    if not pragma_seen[0]:
        processed = f"{target_pragma(solc_version)}\n\n{processed}"
    return processed


def rewrite_pragma(source: str, solc_version: str) -> str:
    """Pin every pragma to ``solc_version``, or prepend one when there is none."""
    rewritten, count = PRAGMA_RE.subn(target_pragma(solc_version), source)
    if count:
        return rewritten
    return f"{target_pragma(solc_version)}\n\n{source}"


class HardhatFlattener:
    """(source, temp_path, original_path) -> flattened source"""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _write_hardhat_config(self, directory: str) -> str:
        config_path = os.path.join(directory, "hardhat.config.js")
        with open(config_path, "w", encoding="utf8") as f:
            f.write(HARDHAT_CONFIG_TEMPLATE.format(
                version=self.settings.solc_version,
                runs=OPTIMIZER_RUNS,
            ))
        return config_path

    def run_flatten(self, path: str) -> str:
        """Run the flatten command on ``path`` and return its stdout."""
        command = list(self.settings.flatten_command) + [path]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.settings.flatten_timeout,
                cwd=self.settings.project_root,
            )
        except subprocess.TimeoutExpired as e:
            raise FlatteningError(f"Flattening timed out after {self.settings.flatten_timeout}s") from e
        except OSError as e:
            raise FlatteningError(f"Flatten command not available: {e}") from e

        if result.returncode != 0:
            raise FlatteningError(
                f"Flatten command exited with {result.returncode}: {(result.stderr or '').strip()[:500]}"
            )
        if not result.stdout.strip():
            raise FlatteningError("Flatten command produced no output")
        return result.stdout

    def __call__(self, source: str, temp_path: str, original_path: Optional[str] = None) -> str:
        with open(temp_path, "w", encoding="utf8") as f:
            f.write(source)

        config_path = self._write_hardhat_config(os.path.dirname(temp_path))
        try:
            logger.info("Flattening contract with Hardhat...")
            flattened = self.run_flatten(original_path or temp_path)
            logger.info("Flattening successful!")
            return normalize_flattened_source(flattened, self.settings.solc_version)
        except FlatteningError as e:
            logger.error("Error flattening contract: %s", e)
            return rewrite_pragma(source, self.settings.solc_version)
        finally:
            if os.path.exists(config_path):
                os.remove(config_path)
