"""
Tests for the lifecycle event bus.
"""

from voice_frontend.models.data_models import LifecycleEvent
from voice_frontend.utils.event_bus import EventBus


class TestEventBus:
    def test_kind_subscription_only_sees_its_kind(self):
        bus = EventBus()
        seen = []
        bus.subscribe(LifecycleEvent.TURN_ERROR, seen.append)

        bus.emit(LifecycleEvent.RECORDING_STARTED, path="a.wav")
        bus.emit(LifecycleEvent.TURN_ERROR, message="Upload failed")

        assert [e.kind for e in seen] == [LifecycleEvent.TURN_ERROR]
        assert seen[0].data == {"message": "Upload failed"}

    def test_subscribe_all_sees_everything_in_order(self):
        bus = EventBus()
        seen = []
        bus.subscribe_all(seen.append)

        bus.emit(LifecycleEvent.LISTENING_PAUSED)
        bus.emit(LifecycleEvent.RECORDING_STARTED)

        assert [e.kind for e in seen] == [LifecycleEvent.LISTENING_PAUSED,
                                          LifecycleEvent.RECORDING_STARTED]

    def test_failing_subscriber_does_not_block_others(self):
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe_all(broken)
        bus.subscribe_all(seen.append)
        bus.emit(LifecycleEvent.TURN_COMPLETED, turn_id=1)

        assert len(seen) == 1

    def test_unsubscribe(self):
        bus = EventBus()
        seen = []
        subscription = bus.subscribe_all(seen.append)
        bus.unsubscribe(subscription)
        bus.emit(LifecycleEvent.TURN_COMPLETED)
        assert seen == []

    def test_history_filter_and_clear(self):
        bus = EventBus()
        bus.emit(LifecycleEvent.LISTENING_RESUMED)
        bus.emit(LifecycleEvent.TURN_ERROR, message="x")

        assert len(bus.get_history()) == 2
        assert len(bus.get_history(LifecycleEvent.TURN_ERROR)) == 1
        bus.clear_history()
        assert bus.get_history() == []
