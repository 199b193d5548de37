"""
Code-signing tool execution.

Runs the platform signing tool as a subprocess.

Design rules:
- One subprocess per file
- Capture stdout + stderr for the log
- Log the full command string
- Non-zero exit code = failure for that file only
- Wall-clock timeout; the process is killed when it expires
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..config import CertificateSelection
from .errors import SignToolNotFoundError, SigningError, SigningTimeoutError

logger = logging.getLogger(__name__)


DEFAULT_TIMESTAMP_URL = "http://timestamp.digicert.com"

# Used for both the timestamp digest (/td) and the file digest (/fd).
DIGEST_ALGORITHM = "sha256"

# Tens of minutes: hardware tokens may wait on a PIN prompt.
DEFAULT_SIGN_TIMEOUT_MS = 30 * 60 * 1000

# Windows 10 SDK install locations
SIGNTOOL_CANDIDATES = [
    r"C:\Program Files (x86)\Windows Kits\10\bin\x64\signtool.exe",
    r"C:\Program Files (x86)\Windows Kits\10\bin\x86\signtool.exe",
]


def find_signtool(explicit: Optional[str] = None) -> str:
    """
    Locate the signing tool binary.

    Search order: explicit path, SIGNTOOL_PATH, PATH, Windows SDK locations.

    Raises:
        SignToolNotFoundError: If no candidate exists
    """
    if explicit:
        if os.path.isfile(explicit):
            return explicit
        raise SignToolNotFoundError(f"Signing tool not found: {explicit}")

    env_path = os.environ.get("SIGNTOOL_PATH")
    if env_path and os.path.isfile(env_path):
        return env_path

    on_path = shutil.which("signtool")
    if on_path:
        return on_path

    for candidate in SIGNTOOL_CANDIDATES:
        if os.path.isfile(candidate):
            return candidate

    raise SignToolNotFoundError(
        "signtool.exe not found, please install the Windows 10 SDK"
    )


def build_sign_command(
    tool: Union[str, Sequence[str]],
    file_path: Union[str, Path],
    certificate: CertificateSelection,
    timestamp_url: str = DEFAULT_TIMESTAMP_URL,
) -> List[str]:
    """
    Assemble the signing tool argument list.

    Args:
        tool: Tool path, or a base command (e.g. interpreter + script)
        file_path: File to sign in place
        certificate: Store name, certificate file or automatic selection
        timestamp_url: RFC 3161 timestamp authority

    Returns:
        Argument list suitable for create_subprocess_exec
    """
    base = [tool] if isinstance(tool, str) else list(tool)
    return [
        *base,
        "sign",
        "/tr", timestamp_url,
        "/td", DIGEST_ALGORITHM,
        "/fd", DIGEST_ALGORITHM,
        *certificate.to_args(),
        str(file_path),
    ]


class SignTool:
    """
    Async wrapper around the signing tool.

    Signs files in place; the file keeps its name.
    """

    def __init__(
        self,
        tool: Union[str, Sequence[str]],
        certificate: Optional[CertificateSelection] = None,
        timestamp_url: str = DEFAULT_TIMESTAMP_URL,
        timeout_ms: int = DEFAULT_SIGN_TIMEOUT_MS,
    ):
        self.tool = tool
        self.certificate = certificate or CertificateSelection()
        self.timestamp_url = timestamp_url
        self.timeout_ms = timeout_ms

    def command_for(self, file_path: Union[str, Path]) -> List[str]:
        return build_sign_command(
            self.tool, file_path, self.certificate, self.timestamp_url
        )

    async def sign(self, file_path: Union[str, Path]) -> str:
        """
        Sign one file in place.

        Returns:
            The signed file path (unchanged)

        Raises:
            SigningTimeoutError: If the timeout expires (process is killed)
            SigningError: If the tool cannot start or exits non-zero
        """
        path_str = str(file_path)
        cmd = self.command_for(path_str)
        logger.info(f"[SignTool] Executing: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SigningError(path_str, f"Failed to start signing tool: {e}") from e

        logger.info(f"[SignTool] Started PID {process.pid} for {path_str}")

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"[SignTool] PID {process.pid} exceeded {self.timeout_ms} ms, killing"
            )
            try:
                process.kill()
            except ProcessLookupError:
                pass  # Process already dead
            await process.wait()
            raise SigningTimeoutError(
                path_str,
                f"Signing timed out after {self.timeout_ms} ms",
            )

        out_text = stdout.decode(errors="replace").strip()
        err_text = stderr.decode(errors="replace").strip()
        exit_code = process.returncode

        logger.info(f"[SignTool] PID {process.pid} exited with code {exit_code}")
        if out_text:
            logger.info(f"[SignTool] stdout: {out_text}")

        if exit_code != 0:
            if err_text:
                logger.error(f"[SignTool] stderr: {err_text}")
            raise SigningError(
                path_str,
                err_text or f"Signing tool exited with code {exit_code}",
                returncode=exit_code,
                stdout=out_text,
                stderr=err_text,
            )

        if err_text:
            logger.warning(f"[SignTool] stderr: {err_text}")
        return path_str
