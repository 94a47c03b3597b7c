# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

"""
Argument resolution for the httpcannon command line.

Turns raw command-line tokens into a BenchmarkConfig, or into an EarlyExit
when help or version output was all that was asked for.

Example:
    >>> config = parse_arguments(["-c", "50", "-d", "5", "localhost:3000/api"])
    >>> print(config.url)
    http://localhost:3000/api
"""

import argparse
import logging
import os
import platform
import re
import sys
from dataclasses import fields
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

import httpx

from .errors import UsageError
from .models import BenchmarkConfig, EarlyExit
from .version import __version__

LOGGER = logging.getLogger(__name__)


# =============================================================================
# Option Tables
# =============================================================================

# Canonical long name -> alternate spellings
OPTION_ALIASES: Dict[str, Tuple[str, ...]] = {
    "connections": ("-c",),
    "pipelining": ("-p",),
    "timeout": ("-t",),
    "duration": ("-d",),
    "amount": ("-a",),
    "json": ("-j",),
    "renderLatencyTable": ("-l", "--latency"),
    "method": ("-m",),
    "headers": ("-H", "--header"),
    "body": ("-b",),
    "servername": ("-s",),
    "bailout": ("-B",),
    "input": ("-i",),
    "maxConnectionRequests": ("-M",),
    "maxOverallRequests": ("-O",),
    "connectionRate": ("-r",),
    "overallRate": ("-R",),
    "reconnectRate": ("-D",),
    "renderProgressBar": ("--progress",),
    "title": ("-T",),
    "version": ("-v",),
    "forever": ("-f",),
    "idReplacement": ("-I",),
    "socketPath": ("-S",),
    "excludeErrorStats": ("-x",),
    "help": ("-h",),
}

OPTION_DEFAULTS: Dict[str, object] = {
    "connections": 10,
    "timeout": 10,
    "pipelining": 1,
    "duration": 10,
    "reconnectRate": 0,
    "renderLatencyTable": False,
    "renderProgressBar": True,
    "json": False,
    "forever": False,
    "method": "GET",
    "idReplacement": False,
    "excludeErrorStats": False,
}

OPTION_TYPES: Dict[str, type] = {
    "connections": int,
    "pipelining": int,
    "timeout": int,
    "duration": int,
    "amount": int,
    "bailout": int,
    "maxConnectionRequests": int,
    "maxOverallRequests": int,
    "connectionRate": float,
    "overallRate": float,
    "reconnectRate": int,
}

# Accept --no-<name> as well
BOOLEAN_OPTIONS = (
    "json",
    "renderLatencyTable",
    "renderProgressBar",
    "forever",
    "idReplacement",
    "excludeErrorStats",
)

FLAG_OPTIONS = ("version", "help")

OPTION_HELP: Dict[str, str] = {
    "connections": "Number of concurrent connections",
    "pipelining": "Number of pipelined requests per connection",
    "timeout": "Seconds before a request is counted as timed out",
    "duration": "Seconds to run the benchmark for",
    "amount": "Total number of requests to send (overrides --duration)",
    "json": "Print the result as a single JSON document on stdout",
    "renderLatencyTable": "Print the full latency percentile table",
    "method": "HTTP method",
    "headers": "Request header as NAME=VALUE or NAME:VALUE (repeatable)",
    "body": "Request body",
    "servername": "TLS server name (SNI) for https targets",
    "bailout": "Stop after this many errors",
    "input": "Read the request body from a file (wins over --body)",
    "maxConnectionRequests": "Maximum requests per connection",
    "maxOverallRequests": "Maximum requests across all connections",
    "connectionRate": "Requests per second per connection",
    "overallRate": "Requests per second across all connections",
    "reconnectRate": "Reconnect each connection after this many requests",
    "renderProgressBar": "Render the progress bar",
    "title": "Title shown in the output",
    "version": "Print version information and exit",
    "forever": "Restart the benchmark whenever it finishes",
    "idReplacement": "Replace [<id>] in body and headers with a random id",
    "socketPath": "Send requests through this unix socket",
    "excludeErrorStats": "Leave error responses out of the statistics",
    "help": "Show this help and exit",
}

RECOGNIZED_SCHEMES = ("http://", "https://")

PORT_HINT = (
    "When targeting a path without a hostname, the PORT environment variable must be available.\n"
    "Use a full URL or set the PORT variable."
)

EPILOG = """
Examples:
  # 10 connections for 10 seconds
  httpcannon http://localhost:3000

  # POST with headers and a body read from a file
  httpcannon -m POST -H "Content-Type=application/json" -i payload.json localhost:3000/items

  # Path against a local server on $PORT, JSON result on stdout
  PORT=8080 httpcannon -j -c 100 -d 30 /health
"""


# =============================================================================
# Parser
# =============================================================================


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting."""

    def error(self, message):
        raise UsageError(f"{self.prog}: error: {message}")


def _field_name(option: str) -> str:
    """Map a camelCase option name to its BenchmarkConfig field."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", option).lower()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser from the option tables."""
    parser = _ArgumentParser(
        prog="httpcannon",
        description="HTTP benchmarking tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("url", nargs="?", help="Target URL, or a path when PORT is set")

    for name, aliases in OPTION_ALIASES.items():
        kwargs = {"dest": _field_name(name), "help": OPTION_HELP[name]}
        if name in FLAG_OPTIONS:
            kwargs["action"] = "store_true"
        elif name in BOOLEAN_OPTIONS:
            kwargs["action"] = argparse.BooleanOptionalAction
            kwargs["default"] = OPTION_DEFAULTS[name]
        elif name == "headers":
            kwargs["action"] = "append"
        else:
            kwargs["type"] = OPTION_TYPES.get(name, str)
            kwargs["default"] = OPTION_DEFAULTS.get(name)
        parser.add_argument(f"--{name}", *aliases, **kwargs)

    parser.add_argument(
        "-n",
        dest="no_render",
        action="store_true",
        help="Disable the progress bar and the results table",
    )
    return parser


# =============================================================================
# Resolution Steps
# =============================================================================


def resolve_url(url: str, port: Optional[str] = None) -> str:
    """
    Complete and validate the benchmark target.

    Args:
        url: Target as given on the command line
        port: Value of the PORT environment variable, if any

    Returns:
        Absolute URL string

    Raises:
        UsageError: If the completed target is not an absolute URL
    """
    try:
        if port:
            # PORT changes the base that relative targets resolve against
            url = str(httpx.URL(f"http://localhost:{port}").join(url))
        if not url.lower().startswith(RECOGNIZED_SCHEMES) and not url.startswith("/"):
            url = f"http://{url}"
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise UsageError(f"Malformed URL {url!r}: {e}\n\n{PORT_HINT}") from e

    if not parsed.is_absolute_url:
        if url.startswith("/") and not parsed.host:
            cause = f"Invalid URL {url!r}: a path was given without a hostname and PORT is not set"
        else:
            cause = f"Malformed URL {url!r}: missing scheme or hostname"
        raise UsageError(f"{cause}\n\n{PORT_HINT}")

    return str(parsed)


def parse_headers(raw: Union[str, Sequence[str], None]) -> Dict[str, str]:
    """
    Fold raw header tokens into a header map.

    Each token is split at its first '=' when that sits after index 0,
    otherwise at its first ':' under the same rule. Later duplicates win.

    Raises:
        UsageError: For a token with no usable separator
    """
    if raw is None:
        return {}
    if isinstance(raw, str):
        raw = [raw]

    headers: Dict[str, str] = {}
    for header in raw:
        index = header.find("=")
        if index <= 0:
            index = header.find(":")
        if index <= 0:
            raise UsageError(f"An HTTP header was not correctly formatted: {header}")
        headers[header[:index]] = header[index + 1 :]
    return headers


def read_body(path: str) -> bytes:
    """Read a request body from disk."""
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise UsageError(f"Unable to read input file {path}: {e.strerror or e}") from e


# =============================================================================
# Entry Point
# =============================================================================


def parse_arguments(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Union[BenchmarkConfig, EarlyExit]:
    """
    Resolve command-line tokens into a benchmark configuration.

    Version and help requests print their text and return an EarlyExit;
    the caller must not start a run in that case.

    Args:
        argv: Tokens without the program name (defaults to sys.argv[1:])
        environ: Environment to read PORT from (defaults to os.environ)

    Returns:
        BenchmarkConfig or EarlyExit

    Raises:
        UsageError: For unparseable flags, an invalid URL, a malformed
            header or an unreadable input file
    """
    if environ is None:
        environ = os.environ

    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else list(argv))

    render_results_table = True
    if args.no_render:
        args.render_progress_bar = False
        render_results_table = False

    if args.version:
        print(f"httpcannon v{__version__}")
        print(f"python v{platform.python_version()}")
        return EarlyExit("version")

    if not args.url or args.help:
        print(parser.format_help(), file=sys.stderr)
        if args.help:
            return EarlyExit("help")
        return EarlyExit("missing-url", exit_code=1)

    url = resolve_url(args.url, environ.get("PORT"))

    body = args.body.encode("utf-8") if args.body is not None else None
    if args.input:
        body = read_body(args.input)

    headers = parse_headers(args.headers)

    options = {f.name: getattr(args, f.name) for f in fields(BenchmarkConfig) if hasattr(args, f.name)}
    options.update(
        url=url,
        body=body,
        headers=headers,
        render_results_table=render_results_table,
    )
    config = BenchmarkConfig(**options)
    LOGGER.debug("Resolved configuration: %s", config)
    return config
