# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""Error types raised by the command-line front end."""


class UsageError(Exception):
    """The invocation cannot be turned into a runnable benchmark."""


class EngineUnavailableError(UsageError):
    """No benchmarking engine is installed, or the requested one is unknown."""


class EngineError(RuntimeError):
    """A started benchmark run failed."""
