"""Unit tests for CancellationToken."""

import threading

import pytest

from dbhub.lifecycle.application.cancellation import CancellationToken
from dbhub.shared_kernel.exceptions import TeardownInterruptedError


class TestCancellationToken:
    def test_not_cancelled_by_default(self):
        token = CancellationToken()

        assert not token.cancelled
        token.raise_if_cancelled("alpha")

    def test_raise_after_cancel(self):
        token = CancellationToken()
        token.cancel("SIGINT")

        with pytest.raises(TeardownInterruptedError) as exc_info:
            token.raise_if_cancelled("alpha")

        assert exc_info.value.details == {"tenant_id": "alpha", "reason": "SIGINT"}
        assert exc_info.value.exit_code == 18

    def test_cancel_from_another_thread(self):
        token = CancellationToken()
        thread = threading.Thread(target=token.cancel)
        thread.start()
        thread.join()

        assert token.cancelled
