"""Tests for the event bus."""

from ratepilot.events import Event, EventBus, EventType


def test_subscribe_and_publish():
    bus = EventBus()
    received = []

    def handler(event: Event):
        received.append(event)

    bus.subscribe(EventType.PRICING_APPLIED, handler)
    bus.publish(Event(event_type=EventType.PRICING_APPLIED, data={"property_id": "prop-1"}))

    assert len(received) == 1
    assert received[0].data["property_id"] == "prop-1"


def test_no_cross_event_delivery():
    bus = EventBus()
    received = []

    bus.subscribe(EventType.PRICING_APPLIED, received.append)
    bus.publish(Event(event_type=EventType.PRICING_BLOCKED, data={}))

    assert len(received) == 0


def test_multiple_subscribers():
    bus = EventBus()
    calls = {"a": 0, "b": 0}

    def handler_a(event: Event):
        calls["a"] += 1

    def handler_b(event: Event):
        calls["b"] += 1

    bus.subscribe(EventType.PRICING_ROLLED_BACK, handler_a)
    bus.subscribe(EventType.PRICING_ROLLED_BACK, handler_b)
    bus.publish(Event(event_type=EventType.PRICING_ROLLED_BACK, data={"reason": "manual"}))

    assert calls["a"] == 1
    assert calls["b"] == 1


def test_subscriber_error_does_not_stop_others():
    bus = EventBus()
    calls = []

    def bad_handler(event: Event):
        raise ValueError("boom")

    def good_handler(event: Event):
        calls.append(True)

    bus.subscribe(EventType.CONFIG_UPDATED, bad_handler)
    bus.subscribe(EventType.CONFIG_UPDATED, good_handler)
    bus.publish(Event(event_type=EventType.CONFIG_UPDATED, data={}))

    assert len(calls) == 1

