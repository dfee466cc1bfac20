"""
Tests for the reconnect delay policy.
"""

import pytest

from chat_client.retry import ReconnectPolicy, calculate_delay_with_jitter
from chat_shared.config.settings import Settings


class TestReconnectPolicy:

    def test_default_is_fixed_five_seconds(self):
        policy = ReconnectPolicy()

        assert [policy.delay_for(n) for n in range(10)] == [5.0] * 10

    def test_backoff_grows_and_caps(self):
        policy = ReconnectPolicy(delay=1.0, backoff=True, max_delay=8.0, jitter_factor=0.0)

        assert [policy.delay_for(n) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 8.0, 8.0]

    def test_jitter_stays_in_range(self):
        policy = ReconnectPolicy(delay=2.0, backoff=True, max_delay=60.0, jitter_factor=0.25)

        for _ in range(100):
            delay = calculate_delay_with_jitter(1, policy)
            assert 3.0 <= delay <= 5.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"delay": 0},
            {"delay": 10.0, "max_delay": 5.0},
            {"backoff_base": 0.5},
            {"jitter_factor": 1.5},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ReconnectPolicy(**kwargs)

    def test_from_settings(self):
        settings = Settings(
            client_reconnect_delay=2.0,
            client_reconnect_backoff=True,
            client_reconnect_max_delay=20.0,
        )

        policy = ReconnectPolicy.from_settings(settings)

        assert policy.delay == 2.0
        assert policy.backoff is True
        assert policy.max_delay == 20.0
