"""Hot-path profiling for the writer, switched on by JSONWRITER_PROFILE."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any

# Read once at import; zero-cost when disabled
PROFILE_HOT_PATHS = __debug__ and "JSONWRITER_PROFILE" in os.environ


@dataclass
class HotPathStats:
    """Statistics for profiling hot paths during encoding."""

    function_name: str
    call_count: int = 0
    total_time_ns: int = 0
    chars_processed: int = 0

    def record_call(self, duration_ns: int, chars: int = 0) -> None:
        """Adds one timed call and the characters it handled."""
        self.call_count += 1
        self.total_time_ns += duration_ns
        self.chars_processed += chars


if PROFILE_HOT_PATHS:
    _hot_path_stats: dict[str, HotPathStats] = {}

    class ProfileContext:
        """Times the enclosed block and files it under func_name."""

        def __init__(self, func_name: str, chars_to_process: int = 0) -> None:
            self.func_name = func_name
            self.chars_to_process = chars_to_process
            self.start_time = 0

        def __enter__(self) -> ProfileContext:
            self.start_time = time.perf_counter_ns()
            return self

        def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
            elapsed = time.perf_counter_ns() - self.start_time
            stats = _hot_path_stats.setdefault(
                self.func_name, HotPathStats(self.func_name)
            )
            stats.record_call(elapsed, self.chars_to_process)

    def get_hot_path_stats() -> dict[str, HotPathStats]:
        return _hot_path_stats.copy()

    def clear_hot_path_stats() -> None:
        _hot_path_stats.clear()

else:

    class ProfileContext:  # type: ignore[no-redef]
        def __init__(self, func_name: str, chars_to_process: int = 0) -> None:
            pass

        def __enter__(self) -> ProfileContext:
            return self

        def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
            pass

    def get_hot_path_stats() -> dict[str, HotPathStats]:
        return {}

    def clear_hot_path_stats() -> None:
        pass
