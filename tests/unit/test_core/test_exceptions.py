# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the error taxonomy and secret redaction."""
from __future__ import annotations

import pytest

from mafailover.core.exceptions import (
    Cancelled,
    Fatal,
    MaFailoverError,
    PollTimeout,
    PreconditionError,
    PrismError,
    ShellError,
    VMwareError,
    format_exception_for_cli,
)


@pytest.mark.unit
class TestExceptionHierarchy:
    """Exit codes and basic fields."""

    def test_base_exception_creation(self):
        err = MaFailoverError(code=1, msg="Test error")

        assert err.code == 1
        assert err.msg == "Test error"
        assert err.cause is None
        assert err.context == {}

    @pytest.mark.parametrize(
        "cls,code",
        [
            (Fatal, 1),
            (PreconditionError, 3),
            (PrismError, 40),
            (VMwareError, 50),
            (ShellError, 60),
            (PollTimeout, 70),
            (Cancelled, 130),
        ],
    )
    def test_default_codes(self, cls, code):
        err = cls(msg="boom")
        assert isinstance(err, MaFailoverError)
        assert err.code == code

    def test_explicit_code_is_kept(self):
        assert PrismError(code=41, msg="x").code == 41
        assert Fatal(code=2, msg="usage").code == 2

    def test_code_is_clamped(self):
        assert MaFailoverError(code=999, msg="x").code == 255
        assert MaFailoverError(code=-4, msg="x").code == 1

    def test_message_is_one_line(self):
        err = Fatal(msg="line one\nline two\r\n  three")
        assert err.msg == "line one line two three"

    def test_with_context_chains(self):
        err = PrismError(msg="failed").with_context(call="GET /cluster/", status=500)
        assert err.context == {"call": "GET /cluster/", "status": 500}

    def test_can_be_raised_from(self):
        with pytest.raises(VMwareError) as ei:
            try:
                raise RuntimeError("socket closed")
            except RuntimeError as e:
                raise VMwareError(msg="task failed", cause=e) from e
        assert isinstance(ei.value.__cause__, RuntimeError)


@pytest.mark.unit
class TestRedaction:
    def test_to_dict_redacts_secrets(self):
        err = PrismError(msg="auth", context={"user": "admin", "password": "hunter2", "nested": {"token": "t"}})
        d = err.to_dict()

        assert d["type"] == "PrismError"
        assert d["code"] == 40
        assert d["context"]["user"] == "admin"
        assert d["context"]["password"] == "***REDACTED***"
        assert d["context"]["nested"]["token"] == "***REDACTED***"

    def test_user_message_redacts_context(self):
        err = Fatal(msg="bad", context={"prism_password": "x", "cluster": "a"})
        text = err.user_message(include_context=True)
        assert "x'" not in text
        assert "prism_password=<redacted>" in text
        assert "cluster='a'" in text


@pytest.mark.unit
class TestCliFormatting:
    def test_context_always_shown(self):
        err = PrismError(msg="Prism call failed", context={"call": "POST /promote"})
        assert format_exception_for_cli(err) == "Prism call failed [call='POST /promote']"

    def test_cause_only_when_very_verbose(self):
        err = ShellError(msg="ssh failed", cause=OSError("refused"))
        assert "cause" not in format_exception_for_cli(err, verbose=1)
        assert "(cause: OSError: refused)" in format_exception_for_cli(err, verbose=2)

    def test_foreign_exception(self):
        assert format_exception_for_cli(ValueError("nope")) == "nope"
        assert format_exception_for_cli(ValueError("nope"), verbose=2) == "ValueError: nope"
