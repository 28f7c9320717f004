"""Property-based tests using hypothesis."""

from __future__ import annotations

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from guildrelay.events import Dispatcher, message_in
from guildrelay.push import ClientRegistry
from tests.harness import TARGET, RelayTestHarness
from tests.mocks import make_client

channel_ids = st.one_of(st.just(TARGET), st.from_regex(r"[0-9]{1,19}", fullmatch=True))


class TestPropertyBased:
    """Property-based tests for relay invariants."""

    @given(channel_ids, st.text(), st.text())
    @settings(max_examples=75)
    def test_broadcast_iff_channel_matches(self, channel_id, author, content):
        """Property: a frame goes out exactly when the channel is the configured one."""
        # Arrange
        h = RelayTestHarness()
        a = h.connect("a")
        evt = h.gateway_event(content, channel_id=channel_id, author=author)

        # Act
        delivered = asyncio.run(h.deliver(evt))

        # Assert
        if channel_id == TARGET:
            assert delivered == 1
            assert h.frames(a) == [{"username": author, "content": content}]
        else:
            assert delivered == 0
            assert h.frames(a) == []

    @given(st.integers(min_value=1, max_value=12), st.data())
    @settings(max_examples=50)
    def test_failing_client_isolated(self, n, data):
        """Property: with N clients and one failing, N-1 receive and the failing one is removed."""
        # Arrange
        k = data.draw(st.integers(min_value=0, max_value=n - 1))
        h = RelayTestHarness()
        clients = [h.connect(f"c{i}", fail=(i == k)) for i in range(n)]

        # Act
        first = asyncio.run(h.deliver(h.gateway_event("one")))
        second = asyncio.run(h.deliver(h.gateway_event("two", message_id="m2")))

        # Assert
        assert first == n - 1
        assert second == n - 1
        assert clients[k] not in h.registry
        assert len(h.registry) == n - 1
        for i, conn in enumerate(clients):
            assert len(h.frames(conn)) == (0 if i == k else 2)

    @given(st.lists(st.sampled_from(["register", "unregister"]), max_size=30), st.integers(0, 4))
    def test_unregister_idempotent(self, ops, extra_unregisters):
        """Property: repeated unregister never raises and never changes membership after the first."""
        registry = ClientRegistry()
        conn = make_client("x")
        bystander = make_client("y")
        registry.register(bystander)

        for op in ops:
            getattr(registry, op)(conn)
        for _ in range(extra_unregisters + 1):
            registry.unregister(conn)
            assert registry.snapshot() == (bystander,)

    @given(st.lists(st.text(min_size=1), min_size=1, max_size=50))
    def test_dispatch_order(self, messages):
        """Property: events are dispatched in publish order."""
        dispatcher = Dispatcher()
        received = []

        class OrderTracker:
            def accept_event(self, source, evt):
                return True

            def push_event(self, source, evt):
                received.append(evt.content)

        dispatcher.register(OrderTracker())
        for i, msg in enumerate(messages):
            _, evt = message_in(TARGET, "u1", "User", msg, f"msg-{i}")
            dispatcher.dispatch("discord", evt)

        assert received == messages
