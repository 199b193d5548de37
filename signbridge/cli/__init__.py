"""
Command-line entry points.

Subcommands:
- agent: run the signing service on the signing host
- handoff: osslsigncode-compatible shim for the build host; the external
  build tool calls it in place of a real signing tool
"""

from .commands import main, run_agent, run_handoff, parse_handoff_args
from .errors import CLIError, ExitCode

__all__ = [
    "main",
    "run_agent",
    "run_handoff",
    "parse_handoff_args",
    "CLIError",
    "ExitCode",
]
