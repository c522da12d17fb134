# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/ssh/ssh_config.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence


def _clean_opt(opt: str) -> str:
    # Keep it one-line and strip; reject embedded newlines.
    o = (opt or "").strip()
    o = o.replace("\r", " ").replace("\n", " ")
    return " ".join(o.split())


@dataclass(frozen=True)
class SSHConfig:
    """
    Connection settings for a controller VM (CVM) shell.

    Key-based auth by default; when `password_env` names an environment
    variable, the command is wrapped with `sshpass -e` and the password is
    handed over through SSHPASS (never on the command line).
    """
    host: str
    user: str = "nutanix"
    port: int = 22
    identity: Optional[Path] = None
    password_env: Optional[str] = None
    ssh_opts: List[str] = field(default_factory=list)

    connect_timeout: int = 10
    keepalive_interval: int = 30
    keepalive_count: int = 3
    strict_host_key_checking: bool = False   # CVMs are rebuilt/re-keyed routinely
    known_hosts_file: Optional[Path] = None

    # transport retries (exit 255 / connection errors only)
    retries: int = 0
    retry_sleep: float = 2.0

    def __post_init__(self) -> None:
        host = (self.host or "").strip()
        if not host:
            raise ValueError("SSHConfig.host must not be empty")
        object.__setattr__(self, "host", host)

        user = (self.user or "").strip()
        if not user:
            raise ValueError("SSHConfig.user must not be empty")
        object.__setattr__(self, "user", user)

        if self.identity is not None:
            object.__setattr__(self, "identity", Path(self.identity).expanduser())

        if self.known_hosts_file is not None:
            object.__setattr__(self, "known_hosts_file", Path(self.known_hosts_file).expanduser())

        if self.password_env is not None:
            object.__setattr__(self, "password_env", self.password_env.strip() or None)

        if self.ssh_opts:
            cleaned: List[str] = []
            for opt in self.ssh_opts:
                o = _clean_opt(opt)
                if o and o not in cleaned:
                    cleaned.append(o)
            object.__setattr__(self, "ssh_opts", cleaned)

        if self.port <= 0 or self.port > 65535:
            raise ValueError(f"Invalid SSH port: {self.port}")

        for name, v in (
            ("connect_timeout", self.connect_timeout),
            ("keepalive_interval", self.keepalive_interval),
            ("keepalive_count", self.keepalive_count),
            ("retries", self.retries),
        ):
            if v < 0:
                raise ValueError(f"{name} must be >= 0 (got {v})")

    @property
    def uses_password(self) -> bool:
        return self.password_env is not None

    def target(self) -> str:
        h = self.host
        if ":" in h and not h.startswith("["):
            h = f"[{h}]"
        return f"{self.user}@{h}"

    def _append_hostkey_policy(self, cmd: List[str]) -> None:
        if self.strict_host_key_checking:
            cmd += ["-o", "StrictHostKeyChecking=yes"]
        else:
            cmd += ["-o", "StrictHostKeyChecking=no"]

        if self.known_hosts_file is not None:
            cmd += ["-o", f"UserKnownHostsFile={self.known_hosts_file}"]
        elif not self.strict_host_key_checking:
            cmd += ["-o", "UserKnownHostsFile=/dev/null"]

    def base_cmd(self) -> List[str]:
        cmd: List[str] = []
        if self.uses_password:
            cmd += ["sshpass", "-e"]

        cmd += [
            "ssh",
            "-p", str(self.port),
            "-o", f"ConnectTimeout={self.connect_timeout}",
            "-o", f"ServerAliveInterval={self.keepalive_interval}",
            "-o", f"ServerAliveCountMax={self.keepalive_count}",
        ]

        # BatchMode would forbid the password prompt sshpass answers.
        cmd += ["-o", "BatchMode=no" if self.uses_password else "BatchMode=yes"]

        self._append_hostkey_policy(cmd)

        if self.identity:
            cmd += ["-i", str(self.identity)]

        for opt in self.ssh_opts:
            cmd += ["-o", opt]

        cmd.append(self.target())
        return cmd

    def remote_cmd(self, argv: Sequence[str]) -> List[str]:
        return self.base_cmd() + ["--"] + list(argv)

    def describe(self) -> str:
        parts = [f"{self.user}@{self.host}:{self.port}"]
        if self.identity:
            parts.append(f"key={self.identity}")
        if self.uses_password:
            parts.append(f"password=${self.password_env}")
        parts.append("hostkey=strict" if self.strict_host_key_checking else "hostkey=off")
        return " ".join(parts)
