"""
Signal log replay
Rebuilds the graph from the external JSON-lines signal log.

The engine persists nothing itself: after a restart (or a reset) the graph
is reconstructed by replaying the log through GraphBuilder.process_signal.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from loguru import logger

from .graph_builder import GraphBuilder


class SignalLogError(Exception):
    """The signal log file could not be read"""


@dataclass
class ReplayStats:
    applied: int = 0
    rejected: int = 0

    @property
    def total(self) -> int:
        return self.applied + self.rejected


def read_signal_log(path: Union[str, Path]) -> Iterator[Tuple[int, Optional[Dict[str, Any]]]]:
    """
    Yield (line number, signal mapping) pairs from a JSON-lines file

    Blank lines are skipped. A line that is not a JSON object is yielded
    as None so the replay counts it as rejected.

    Raises:
        SignalLogError: If the file cannot be opened
    """
    log_file = Path(path)
    try:
        handle = open(log_file, "r", encoding="utf-8")
    except OSError as e:
        raise SignalLogError(f"Cannot read signal log {log_file}: {e}") from e

    with handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                yield line_number, None
                continue
            yield line_number, record if isinstance(record, dict) else None


def replay_signal_log(path: Union[str, Path], builder: GraphBuilder) -> ReplayStats:
    """
    Feed every signal of the log into the builder, in file order

    Args:
        path: JSON-lines signal log
        builder: Builder that receives the signals

    Returns:
        ReplayStats: applied / rejected counts
    """
    stats = ReplayStats()

    for line_number, record in read_signal_log(path):
        if record is not None and builder.process_signal(record):
            stats.applied += 1
        else:
            stats.rejected += 1
            logger.warning(f"Rejected signal at {path}:{line_number}")

    logger.info(
        f"Replayed signal log {path}: {stats.applied} applied, {stats.rejected} rejected "
        f"(generation {builder.generation})"
    )
    return stats
