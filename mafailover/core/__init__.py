# mafailover/core/__init__.py
from .exceptions import (
    Cancelled,
    Fatal,
    MaFailoverError,
    PollTimeout,
    PreconditionError,
    PrismError,
    ShellError,
    VMwareError,
)
from .polling import CancelToken, PollPolicy, Poller

__all__ = [
    "Cancelled",
    "Fatal",
    "MaFailoverError",
    "PollTimeout",
    "PreconditionError",
    "PrismError",
    "ShellError",
    "VMwareError",
    "CancelToken",
    "PollPolicy",
    "Poller",
]
