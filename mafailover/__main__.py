# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/__main__.py
from __future__ import annotations

import argparse
import logging
import signal
import sys
import traceback
from typing import Any, Dict, Optional, Sequence

from .cli.args import _credentials, parse_args_with_config
from .core.exceptions import Fatal, MaFailoverError, format_exception_for_cli
from .core.polling import CancelToken, PollPolicy
from .failover.context import RunOptions
from .failover.orchestrator import FailoverOrchestrator


def _print_stderr(msg: str) -> None:
    print(msg, file=sys.stderr)


def _safe_log(logger: Any, level: str, msg: str) -> None:
    """
    Best-effort logging without assuming logger exists or has a given method.
    """
    if logger is None:
        _print_stderr(msg)
        return

    fn = getattr(logger, level, None)
    if callable(fn):
        fn(msg)
    else:
        _print_stderr(msg)


def _install_sigterm(cancel: CancelToken) -> None:
    # SIGTERM stops the current wait between two polls (exit 130).
    def _handler(signum: int, frame: Any) -> None:
        cancel.cancel()

    try:
        signal.signal(signal.SIGTERM, _handler)
    except ValueError:
        pass  # not in the main thread


def run(args: argparse.Namespace, conf: Dict[str, Any], logger: Any) -> int:
    cancel = CancelToken()
    _install_sigterm(cancel)

    policy = PollPolicy(
        interval_s=float(args.poll_interval),
        deadline_s=float(args.poll_timeout) if args.poll_timeout is not None else None,
    )
    orchestrator = FailoverOrchestrator(
        logger,
        RunOptions.from_args(args),
        _credentials(args, conf),
        poll_policy=policy,
        cancel=cancel,
    )
    orchestrator.run()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    logger: Optional[Any] = None
    verbose = 0

    # Phase 1: parse + validate (no network access yet)
    try:
        args, conf, logger = parse_args_with_config(argv)
        verbose = int(getattr(args, "verbose", 0) or 0)
    except Fatal as e:
        # Validators raise without logging; the logger exists once phase 0 ran.
        logger = logger or logging.getLogger("mafailover")
        _safe_log(logger if logger.handlers else None, "error", format_exception_for_cli(e))
        raise SystemExit(e.code)
    except KeyboardInterrupt:
        _safe_log(logger, "warning", "Interrupted by user (Ctrl+C).")
        raise SystemExit(130)

    # Phase 2: failover
    try:
        rc = run(args, conf, logger)
    except MaFailoverError as e:
        _safe_log(logger, "error", format_exception_for_cli(e, verbose=verbose))
        rc = e.code
    except KeyboardInterrupt:
        _safe_log(logger, "warning", "Interrupted by user (Ctrl+C).")
        rc = 130
    except Exception as e:
        _safe_log(logger, "error", f"💥 UNHANDLED {type(e).__name__}: {e}")
        _safe_log(logger, "debug", traceback.format_exc())
        rc = 1

    raise SystemExit(rc)


if __name__ == "__main__":
    main()
