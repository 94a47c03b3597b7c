# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Process entry point.

Usage:
    httpcannon -c 100 -d 30 http://localhost:3000
    PORT=3000 python -m httpcannon -j /health
"""

import asyncio
import logging
import os
import sys
from typing import List, Optional

from .cli import parse_arguments
from .engine import load_engine
from .errors import UsageError
from .models import EarlyExit
from .runner import ProcessContext, RunOrchestrator


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging(os.environ.get("HTTPCANNON_LOG_LEVEL", "WARNING"))

    try:
        outcome = parse_arguments(argv)
        if isinstance(outcome, EarlyExit):
            return outcome.exit_code
        engine = load_engine()
    except UsageError as e:
        print(e, file=sys.stderr)
        return 1

    # EngineError is left to the interpreter
    orchestrator = RunOrchestrator(engine, ProcessContext())
    asyncio.run(orchestrator.run(outcome))
    return 0


if __name__ == "__main__":
    sys.exit(main())
