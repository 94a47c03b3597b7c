# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""httpcannon - command-line front end for HTTP benchmarking engines."""

from .cli import parse_arguments
from .engine import RunHandle, launch, load_engine
from .errors import EngineError, EngineUnavailableError, UsageError
from .models import BenchmarkConfig, EarlyExit
from .progress import track
from .runner import ProcessContext, RunOrchestrator, run_benchmark
from .version import __version__

__all__ = [
    "BenchmarkConfig",
    "EarlyExit",
    "EngineError",
    "EngineUnavailableError",
    "ProcessContext",
    "RunHandle",
    "RunOrchestrator",
    "UsageError",
    "__version__",
    "launch",
    "load_engine",
    "parse_arguments",
    "run_benchmark",
    "track",
]
