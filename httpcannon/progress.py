# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""Plain-text run tracker: a start banner and the final results tables."""

import sys
from dataclasses import asdict, is_dataclass
from typing import Any, Mapping, Optional, TextIO

from .engine import RunHandle
from .models import BenchmarkConfig

RESULT_COLUMNS = ("p2_5", "p50", "p97_5", "p99", "average", "stddev", "max")
LATENCY_PERCENTILES = ("p2_5", "p50", "p75", "p90", "p97_5", "p99", "p99_9", "p99_99", "p99_999")

# (result key, label, unit)
RESULT_ROWS = (
    ("latency", "Latency", "ms"),
    ("requests", "Req/Sec", ""),
    ("throughput", "Bytes/Sec", "B"),
)


def track(handle: RunHandle, config: BenchmarkConfig, stream: Optional[TextIO] = None) -> None:
    """Print the run banner now and the results once the run is done."""
    stream = stream or sys.stderr
    print_banner(config, stream)
    handle.on("done", lambda result: print_results(result, config, stream))


def print_banner(config: BenchmarkConfig, stream: TextIO) -> None:
    if config.title:
        print(config.title, file=stream)
    if config.amount:
        print(f"Running {config.amount} requests test @ {config.url}", file=stream)
    else:
        print(f"Running {config.duration}s test @ {config.url}", file=stream)

    line = f"{config.connections} connections"
    if config.pipelining > 1:
        line += f" with {config.pipelining} pipelining factor"
    print(line, file=stream)
    print(file=stream)


def _label(percentile: str) -> str:
    return percentile[1:].replace("_", ".") + "%"


def print_results(result: Any, config: BenchmarkConfig, stream: TextIO) -> None:
    """Print the results table, the optional latency table and the totals."""
    if not config.render_results_table:
        return
    if is_dataclass(result):
        result = asdict(result)
    if not isinstance(result, Mapping):
        return

    headings = [_label(c) if c.startswith("p") else c.capitalize() for c in RESULT_COLUMNS]
    print(f"  {'Stat':<14}" + "".join(f" {h:>10}" for h in headings), file=stream)
    print(f"  {'-' * 14}" + f" {'-' * 10}" * len(RESULT_COLUMNS), file=stream)
    for key, label, unit in RESULT_ROWS:
        stats = result.get(key)
        if not isinstance(stats, Mapping):
            continue
        name = f"{label} ({unit})" if unit else label
        print(f"  {name:<14}" + "".join(f" {stats.get(c) or 0:>10.2f}" for c in RESULT_COLUMNS), file=stream)
    print(file=stream)

    latency = result.get("latency")
    if config.render_latency_table and isinstance(latency, Mapping):
        print(f"  {'Percentile':<12} {'Latency (ms)':>14}", file=stream)
        print(f"  {'-' * 12} {'-' * 14}", file=stream)
        for p in LATENCY_PERCENTILES:
            if p in latency:
                print(f"  {_label(p):<12} {latency[p] or 0:>14.2f}", file=stream)
        print(file=stream)

    # Missing and None stats both count as zero
    requests = result.get("requests") or {}
    throughput = result.get("throughput") or {}
    duration = result.get("duration")
    if duration is None:
        duration = config.duration
    print(
        f"{requests.get('total') or 0} requests in {duration}s, "
        f"{throughput.get('total') or 0} bytes read",
        file=stream,
    )
    if not config.exclude_error_stats:
        errors = result.get("errors") or 0
        timeouts = result.get("timeouts") or 0
        if errors or timeouts:
            print(f"{errors} errors ({timeouts} timeouts)", file=stream)
    non_2xx = result.get("non2xx") or 0
    if non_2xx:
        print(f"{non_2xx} non 2xx responses", file=stream)
