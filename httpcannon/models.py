# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Data models for the httpcannon command line.

A successful resolution produces a BenchmarkConfig; help, version and
a missing target produce an EarlyExit instead.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class BenchmarkConfig:
    """Fully resolved parameters for a single benchmark run."""

    # Absolute target URL
    url: str

    # Load shape
    connections: int = 10
    pipelining: int = 1
    timeout: int = 10  # seconds
    duration: int = 10  # seconds
    amount: Optional[int] = None
    max_connection_requests: Optional[int] = None
    max_overall_requests: Optional[int] = None
    connection_rate: Optional[float] = None  # requests/sec per connection
    overall_rate: Optional[float] = None  # requests/sec across connections
    reconnect_rate: int = 0

    # Request
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    servername: Optional[str] = None
    socket_path: Optional[str] = None
    id_replacement: bool = False

    # Run control
    forever: bool = False
    bailout: Optional[int] = None
    title: Optional[str] = None

    # Output
    json: bool = False
    render_latency_table: bool = False
    render_progress_bar: bool = True
    render_results_table: bool = True
    exclude_error_stats: bool = False


@dataclass(frozen=True)
class EarlyExit:
    """Resolution finished without a configuration to run."""

    reason: str  # "help", "version" or "missing-url"
    exit_code: int = 0
