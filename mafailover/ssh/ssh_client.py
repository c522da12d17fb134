# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/ssh/ssh_client.py
from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..core.exceptions import ShellError
from ..core.utils import U
from .ssh_config import SSHConfig

CLUSTER_CMD = "/usr/local/nutanix/cluster/bin/cluster"
CLUSTER_STOP_CONFIRMATION = "I agree"


@dataclass(frozen=True)
class SSHResult:
    rc: int
    stdout: str
    stderr: str
    argv: List[str]
    seconds: float

    @property
    def ok(self) -> bool:
        return self.rc == 0


class SSHClient:
    """
    Remote shell on a CVM through the system `ssh` binary.

    Commands run under `sh -lc` so the nutanix user's profile (PATH, cluster
    environment) is loaded. Transport failures (exit 255, connection errors)
    are retried cfg.retries times; remote command failures are not.
    """

    def __init__(self, logger: logging.Logger, cfg: SSHConfig):
        self.logger = logger
        self.cfg = cfg

    def __repr__(self) -> str:
        return f"SSHClient({self.cfg.describe()})"

    # ----------------------------
    # argv / env builders
    # ----------------------------

    @staticmethod
    def _remote_sh(cmd: str) -> str:
        return f"sh -lc {shlex.quote(cmd)}"

    def _argv(self, cmd: str) -> List[str]:
        return self.cfg.remote_cmd([self._remote_sh(cmd)])

    def _env(self) -> Optional[Dict[str, str]]:
        if not self.cfg.uses_password:
            return None
        secret = os.environ.get(self.cfg.password_env or "")
        if not secret:
            raise ShellError(
                msg=f"Environment variable {self.cfg.password_env} is not set (CVM password)",
                context={"host": self.cfg.host},
            )
        env = dict(os.environ)
        env["SSHPASS"] = secret
        return env

    def _check_tools(self) -> None:
        needed = ["ssh"] + (["sshpass"] if self.cfg.uses_password else [])
        missing = [t for t in needed if U.which(t) is None]
        if missing:
            raise ShellError(
                msg=f"Cannot open remote shell on {self.cfg.host}: missing {', '.join(missing)}",
                context={"host": self.cfg.host},
            )

    # ----------------------------
    # execution
    # ----------------------------

    def _run_local(
        self,
        argv: Sequence[str],
        *,
        timeout: Optional[int],
        input_text: Optional[str],
    ) -> SSHResult:
        """Execute the local ssh command. Never raises on rc != 0."""
        t0 = time.monotonic()
        cp = U.run_cmd(
            self.logger,
            list(argv),
            check=False,
            capture=True,
            env=self._env(),
            timeout=timeout,
            input_text=input_text,
        )
        return SSHResult(
            rc=int(getattr(cp, "returncode", 0) or 0),
            stdout=cp.stdout or "",
            stderr=cp.stderr or "",
            argv=list(argv),
            seconds=time.monotonic() - t0,
        )

    @staticmethod
    def _looks_transient(res: SSHResult) -> bool:
        if res.rc == 255:
            return True
        s = (res.stderr or "").lower()
        markers = (
            "connection timed out",
            "connection refused",
            "no route to host",
            "network is unreachable",
            "connection reset by peer",
            "kex_exchange_identification",
        )
        return any(m in s for m in markers)

    def _raise_on_failure(self, res: SSHResult, desc: str) -> None:
        if res.ok:
            return
        what = "remote shell" if res.rc == 255 else desc
        raise ShellError(
            msg=f"{what} on {self.cfg.host} failed (rc={res.rc}, {res.seconds:.2f}s): {(res.stderr or '').strip()}",
            context={"host": self.cfg.host, "rc": res.rc, "command": desc},
        )

    def run(
        self,
        cmd: str,
        *,
        timeout: Optional[int] = None,
        check: bool = True,
        input_text: Optional[str] = None,
    ) -> SSHResult:
        """
        Run `cmd` on the CVM and return its SSHResult.

        With check=True a non-zero exit raises ShellError; a local timeout
        always raises ShellError.
        """
        self._check_tools()
        argv = self._argv(cmd)
        attempts = 1 + int(self.cfg.retries)

        for attempt in range(1, attempts + 1):
            try:
                res = self._run_local(argv, timeout=timeout, input_text=input_text)
            except subprocess.TimeoutExpired as e:
                raise ShellError(
                    msg=f"Remote command on {self.cfg.host} timed out after {timeout}s: {cmd}",
                    cause=e,
                    context={"host": self.cfg.host, "command": cmd},
                ) from e

            if attempt < attempts and self._looks_transient(res):
                self.logger.warning(
                    "SSH transport issue on %s (attempt %d/%d, rc=%d); retrying in %.1fs",
                    self.cfg.host, attempt, attempts, res.rc, self.cfg.retry_sleep,
                )
                time.sleep(self.cfg.retry_sleep)
                continue

            if check:
                self._raise_on_failure(res, cmd)
            return res

        raise ShellError(msg=f"SSH to {self.cfg.host} failed after {attempts} attempt(s)")  # pragma: no cover

    # ----------------------------
    # cluster helpers
    # ----------------------------

    def cluster_stop(self, *, timeout: Optional[int] = None) -> SSHResult:
        """
        Issue `cluster stop`, answering its confirmation prompt.

        The result is returned unchecked: the stop has to be verified by the
        caller (the command keeps running on the CVM after we return).
        """
        cmd = f"echo {shlex.quote(CLUSTER_STOP_CONFIRMATION)} | {CLUSTER_CMD} stop"
        self.logger.info("Issuing cluster stop on %s", self.cfg.host)
        res = self.run(cmd, timeout=timeout, check=False)
        if res.rc == 255:
            self._raise_on_failure(res, "cluster stop")
        if not res.ok:
            self.logger.warning("cluster stop on %s exited rc=%d: %s", self.cfg.host, res.rc, res.stderr.strip())
        return res
