"""Exit codes returned by the fpvscan CLI.

0 and 1 keep their usual meaning and 2 is what argparse uses for usage
errors, so shell wrappers can tell a bad invocation from missing hardware
without parsing stderr.
"""

from __future__ import annotations


class ExitCode:
    SUCCESS: int = 0
    GENERAL_ERROR: int = 1
    INVALID_ARGS: int = 2
    # The scan thread stopped on its own (crash) before the requested duration.
    SCAN_ABORTED: int = 3
    # HackRF missing, busy, or not answering a one-shot measurement.
    DEVICE_UNAVAILABLE: int = 4

    _MESSAGES = {
        0: "Success",
        1: "General error",
        2: "Invalid arguments",
        3: "Scan aborted",
        4: "SDR device unavailable",
    }

    @classmethod
    def message(cls, code: int) -> str:
        return cls._MESSAGES.get(code, f"Unknown exit code {code}")
