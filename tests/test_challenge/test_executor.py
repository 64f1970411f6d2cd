"""Tests for the challenge executor adapter."""

from __future__ import annotations

import threading

import pytest

from wallet_provisioning.challenge.classification import AdvisoryRules
from wallet_provisioning.challenge.executor import (
    AdvisoryWarning,
    ChallengeError,
    ChallengeExecutorAdapter,
    Fatal,
    Success,
)
from wallet_provisioning.errors.provisioning_errors import ChallengeTimeoutError
from wallet_provisioning.provider.models import AccessToken

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _ThreadedModule:
    """Calls back from a worker thread, like a native SDK would."""

    def __init__(self, error=None, result=None) -> None:
        self.error = error
        self.result = result
        self.thread: threading.Thread | None = None

    def execute(self, challenge_id, callback):
        self.thread = threading.Thread(target=callback, args=(self.error, self.result))
        self.thread.start()


class _BrokenModule:
    def execute(self, challenge_id, callback):
        msg = "secure module not initialised"
        raise RuntimeError(msg)


class _ChattyModule:
    """Calls back twice; only the first report counts."""

    def execute(self, challenge_id, callback):
        callback(None, "first")
        callback({"code": 1, "message": "late failure"}, None)


class _PlainModule:
    """Module without set_authentication."""

    def __init__(self) -> None:
        self.executed = []

    def execute(self, challenge_id, callback):
        self.executed.append(challenge_id)
        callback(None, None)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


class TestExecuteOutcomes:
    async def test_success(self, make_module):
        module = make_module(result={"type": "CREATE_WALLET"})
        outcome = await ChallengeExecutorAdapter(module).execute("c1")
        assert outcome == Success(result={"type": "CREATE_WALLET"})
        assert module.executed == ["c1"]

    async def test_advisory_code(self, make_module):
        module = make_module(error={"code": 155705, "message": "hint can't be the same"})
        outcome = await ChallengeExecutorAdapter(module).execute("c1")
        assert isinstance(outcome, AdvisoryWarning)
        assert outcome.code == 155705

    async def test_advisory_phrase(self, make_module):
        module = make_module(error={"code": 3, "message": "Validation failed"})
        outcome = await ChallengeExecutorAdapter(module).execute("c1")
        assert isinstance(outcome, AdvisoryWarning)

    async def test_unknown_error_is_fatal(self, make_module):
        module = make_module(error={"code": 155110, "message": "PIN not set"})
        outcome = await ChallengeExecutorAdapter(module).execute("c1")
        assert isinstance(outcome, Fatal)
        assert outcome.code == 155110
        assert "PIN not set" in outcome.message

    async def test_exception_error_object(self, make_module):
        module = make_module(error=RuntimeError("user cancelled"))
        outcome = await ChallengeExecutorAdapter(module).execute("c1")
        assert isinstance(outcome, Fatal)
        assert "user cancelled" in outcome.message

    async def test_custom_rules(self, make_module):
        module = make_module(error={"code": 42, "message": "retry"})
        adapter = ChallengeExecutorAdapter(module, rules=AdvisoryRules.with_extra(codes=[42]))
        assert isinstance(await adapter.execute("c1"), AdvisoryWarning)

    async def test_classifier_decides(self, make_module, monkeypatch):
        seen = []

        def classify(code, message, rules):
            seen.append((code, message))
            return True

        monkeypatch.setattr(
            "wallet_provisioning.challenge.executor.classify_challenge_error", classify
        )
        module = make_module(error={"code": 155110, "message": "PIN not set"})
        outcome = await ChallengeExecutorAdapter(module).execute("c1")
        assert isinstance(outcome, AdvisoryWarning)
        assert seen == [(155110, "PIN not set")]

    async def test_module_raises_is_fatal(self):
        outcome = await ChallengeExecutorAdapter(_BrokenModule()).execute("c1")
        assert isinstance(outcome, Fatal)
        assert "not initialised" in outcome.message

    async def test_first_callback_wins(self):
        outcome = await ChallengeExecutorAdapter(_ChattyModule()).execute("c1")
        assert outcome == Success(result="first")


class TestExecuteTiming:
    async def test_timeout(self, make_module):
        module = make_module(respond=False)
        adapter = ChallengeExecutorAdapter(module, timeout=0.01)
        with pytest.raises(ChallengeTimeoutError) as exc_info:
            await adapter.execute("c1")
        assert exc_info.value.status_code == 504

    async def test_timeout_override(self, make_module):
        adapter = ChallengeExecutorAdapter(make_module(respond=False), timeout=60)
        with pytest.raises(ChallengeTimeoutError):
            await adapter.execute("c1", timeout=0.01)

    async def test_callback_from_thread(self):
        module = _ThreadedModule(result="done")
        outcome = await ChallengeExecutorAdapter(module, timeout=5).execute("c1")
        module.thread.join()
        assert outcome == Success(result="done")

    async def test_advisory_from_thread(self):
        module = _ThreadedModule(error={"code": "155705", "message": ""})
        outcome = await ChallengeExecutorAdapter(module, timeout=5).execute("c1")
        module.thread.join()
        assert isinstance(outcome, AdvisoryWarning)


class TestAuthentication:
    async def test_token_handed_to_module(self, make_module):
        module = make_module()
        token = AccessToken(user_token="tok", encryption_key="ek")
        await ChallengeExecutorAdapter(module).execute("c1", token=token)
        assert module.authentications == [("tok", "ek")]

    async def test_no_token_no_authentication(self, make_module):
        module = make_module()
        await ChallengeExecutorAdapter(module).execute("c1")
        assert module.authentications == []

    async def test_plain_module_skips_authentication(self):
        module = _PlainModule()
        token = AccessToken(user_token="tok")
        assert isinstance(
            await ChallengeExecutorAdapter(module).execute("c1", token=token), Success
        )
        assert module.executed == ["c1"]


class TestChallengeError:
    def test_from_dict(self):
        assert ChallengeError.from_callback({"code": 1, "message": "m"}) == ChallengeError(1, "m")

    def test_from_object(self):
        class _Err:
            code = 5
            message = "obj"

        assert ChallengeError.from_callback(_Err()) == ChallengeError(5, "obj")

    def test_from_string(self):
        assert ChallengeError.from_callback("boom") == ChallengeError(None, "boom")
