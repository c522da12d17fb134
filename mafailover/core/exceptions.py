# SPDX-License-Identifier: LGPL-3.0-or-later
# mafailover/core/exceptions.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

REDACTED = "***REDACTED***"


def _safe_int(x: Any, default: int = 1) -> int:
    try:
        return int(x)
    except Exception:
        return default


def _clamp_exit_code(code: int) -> int:
    # Exit codes are 0..255.
    if code < 0:
        return 1
    if code > 255:
        return 255
    return code


def _one_line(s: str, limit: int = 600) -> str:
    s = (s or "").strip().replace("\r", " ").replace("\n", " ")
    s = " ".join(s.split())
    return s if len(s) <= limit else (s[: limit - 3] + "...")


_SECRET_KEY_PARTS = (
    "pass",
    "password",
    "passwd",
    "secret",
    "token",
    "apikey",
    "api_key",
    "auth",
    "cookie",
    "session",
    "bearer",
    "private",
)


def _is_secret_key(k: str) -> bool:
    ks = (k or "").lower()
    return any(p in ks for p in _SECRET_KEY_PARTS)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: (REDACTED if _is_secret_key(str(k)) else _redact(v)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact(v) for v in value]
    return value


def _format_context_compact(ctx: Dict[str, Any]) -> str:
    # Stable order, redaction, single-line.
    parts = []
    for k in sorted(ctx.keys()):
        v = ctx.get(k)
        if _is_secret_key(str(k)):
            parts.append(f"{k}=<redacted>")
        else:
            parts.append(f"{k}={_redact(v)!r}")
    return ", ".join(parts)


@dataclass(eq=False)
class MaFailoverError(Exception):
    """
    Base project error with:
      - stable fields for reporting/JSON
      - readable __str__ (what operators see)
      - the exit code the CLI terminates with
    """
    code: int = 1
    msg: str = "error"
    cause: Optional[BaseException] = None
    context: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        self.code = _clamp_exit_code(_safe_int(self.code, default=1))
        self.msg = _one_line(self.msg) or self.__class__.__name__
        if self.context is None:
            self.context = {}
        super().__init__(self.msg)
        self.args = (self.msg,)

    def with_context(self, **ctx: Any) -> "MaFailoverError":
        if self.context is None:
            self.context = {}
        self.context.update(ctx)
        return self

    def user_message(self, *, include_context: bool = False, include_cause: bool = False) -> str:
        """
        Human-friendly message for CLI output/logs.
        """
        base = self.msg or self.__class__.__name__
        parts = [base]

        if include_context and self.context:
            parts.append(f"[{_one_line(_format_context_compact(self.context), limit=600)}]")

        if include_cause and self.cause is not None:
            parts.append(f"(cause: {type(self.cause).__name__}: {_one_line(str(self.cause))})")

        return " ".join(parts)

    def __str__(self) -> str:
        return self.user_message(include_context=False, include_cause=False)

    def to_dict(self, *, include_cause: bool = False) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "code": self.code,
            "message": self.msg,
            "context": _redact(dict(self.context or {})),
        }
        if include_cause and self.cause is not None:
            d["cause"] = {"type": type(self.cause).__name__, "message": _one_line(str(self.cause))}
        return d


class Fatal(MaFailoverError):
    """
    User-facing fatal error (bad input, unusable environment).
    """
    pass


class PreconditionError(MaFailoverError):
    """
    A safety check failed before anything was changed.
    Redundancy, upgrades, vCenter registration, remote site, HA/DRS, host matching.
    """

    def __post_init__(self) -> None:
        if self.code == 1:
            self.code = 3
        super().__post_init__()


class PrismError(MaFailoverError):
    """
    Prism (storage cluster REST API) call failed.
    """

    def __post_init__(self) -> None:
        if self.code == 1:
            self.code = 40
        super().__post_init__()


class VMwareError(MaFailoverError):
    """
    vSphere/vCenter operation failed.
    Use for pyvmomi / SDK / ESXi errors.
    """

    def __post_init__(self) -> None:
        if self.code == 1:
            self.code = 50
        super().__post_init__()


class ShellError(MaFailoverError):
    """
    Remote command on a controller VM failed or could not be started.
    """

    def __post_init__(self) -> None:
        if self.code == 1:
            self.code = 60
        super().__post_init__()


class PollTimeout(MaFailoverError):
    """A bounded wait ran past its deadline or poll budget."""

    def __post_init__(self) -> None:
        if self.code == 1:
            self.code = 70
        super().__post_init__()


class Cancelled(MaFailoverError):
    """A wait was cancelled through its CancelToken."""

    def __post_init__(self) -> None:
        if self.code == 1:
            self.code = 130
        super().__post_init__()


def format_exception_for_cli(e: BaseException, *, verbose: int = 0) -> str:
    """
    One-liner output for CLI.

    verbose=0: message + compact context (which call, which object)
    verbose>=2: message + context + cause
    """
    if isinstance(e, MaFailoverError):
        return e.user_message(
            include_context=True,
            include_cause=(verbose >= 2),
        )

    if verbose >= 2:
        return f"{type(e).__name__}: {_one_line(str(e))}"
    return _one_line(str(e)) or type(e).__name__
