"""
Tests for service startup, shutdown ordering and error escalation.
"""

import asyncio
from unittest.mock import patch

import pytest

from voice_frontend.config import get_testing_config
from voice_frontend.models.data_models import MicrophoneOwner, TurnState
from voice_frontend.service import VoiceService
from voice_frontend.utils.error_handling import (
    EngineInitializationFailed,
    MicrophoneBusy,
    PermissionDenied,
)


@pytest.fixture
def service_factory(fakes, tmp_path):
    def build(**service_overrides):
        config = get_testing_config()
        config['recorder']['config']['directory'] = str(tmp_path / "recordings")
        config['service'].update(service_overrides)
        providers = {k: v for k, v in fakes.items() if k != 'timeline'}
        return VoiceService(config, providers=providers, permission_check=lambda: True)
    return build


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_arms_listener_and_buttons(self, service_factory, fakes):
        service = service_factory()
        await service.start()
        try:
            assert service.is_running
            assert service.arbiter.owner == MicrophoneOwner.WAKE_WORD_LISTENER
            assert fakes['wake_lock'].held
            assert fakes['press_source'].on_press is not None
            assert fakes['timeline'][:2] == ["wake_lock.acquire", "engine.start"]
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_stop_releases_everything_in_order(self, service_factory, fakes):
        service = service_factory()
        await service.start()
        await service.stop()

        assert not service.is_running
        assert service.arbiter.owner == MicrophoneOwner.NONE
        assert fakes['press_source'].stopped
        assert not fakes['wake_lock'].held
        assert fakes['timeline'][-3:] == ["engine.stop", "upload.close", "wake_lock.release"]

    @pytest.mark.asyncio
    async def test_stop_during_upload_cancels_network_call_first(self, service_factory, fakes, wait_until):
        service = service_factory()
        fakes['upload'].hold = asyncio.Event()
        await service.start()

        assert await service.toggle_recording() is True
        assert await service.toggle_recording() is True
        assert await wait_until(lambda: "upload.start" in fakes['timeline'])

        await service.stop()

        timeline = fakes['timeline']
        assert fakes['upload'].cancelled
        assert timeline.index("upload.cancelled") < timeline.index("upload.close")
        assert timeline[-1] == "wake_lock.release"
        assert service.arbiter.owner == MicrophoneOwner.NONE
        assert service.orchestrator.state == TurnState.IDLE

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, service_factory, fakes):
        service = service_factory()
        await service.start()
        await service.stop()
        await service.stop()
        assert fakes['timeline'].count("upload.close") == 1


class TestEngineFailure:
    @pytest.mark.asyncio
    async def test_engine_failure_stops_service(self, service_factory, fakes):
        fakes['wakeword'].fail_start = True
        service = service_factory(shutdown_on_engine_failure=True)

        with pytest.raises(EngineInitializationFailed):
            await service.start()

        assert not service.is_running
        assert not fakes['wake_lock'].held

    @pytest.mark.asyncio
    async def test_engine_failure_can_continue_with_buttons(self, service_factory, fakes):
        fakes['wakeword'].fail_start = True
        service = service_factory(shutdown_on_engine_failure=False)

        await service.start()
        try:
            assert service.is_running
            assert service.arbiter.owner == MicrophoneOwner.NONE
            assert service.get_status()['errors']['total_errors'] == 1
            assert await service.toggle_recording() is True
        finally:
            await service.stop()


class TestTriggers:
    @pytest.mark.asyncio
    async def test_press_pattern_starts_recording(self, service_factory, fakes, wait_until):
        service = service_factory()
        await service.start()
        try:
            on_press = fakes['press_source'].on_press
            for t in (10_000, 10_400, 10_900, 11_500):
                on_press(t)
            assert await wait_until(lambda: service.orchestrator.state == TurnState.RECORDING)
            assert service.orchestrator._turn.trigger.value == "button_pattern"
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_wake_word_ignored_while_recording(self, service_factory, fakes, wait_until):
        service = service_factory()
        await service.start()
        try:
            fakes['wakeword'].detect()
            assert await wait_until(lambda: service.orchestrator.state == TurnState.RECORDING)
            fakes['wakeword'].detect()
            await service.dispatcher.drain()
            assert fakes['timeline'].count("recorder.start") == 1
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_wake_beep_only_after_recording_starts(self, service_factory, fakes):
        service = service_factory(confirmation_beep=True)
        fakes['recorder'].start_error = PermissionDenied("Microphone access denied")
        with patch('voice_frontend.service.beep_wake_detected') as wake_beep, \
                patch('voice_frontend.service.beep_error') as error_beep:
            await service.start()
            try:
                await service.dispatcher.submit(service.on_wake_word)
                wake_beep.assert_not_called()
                error_beep.assert_called_once()

                fakes['recorder'].start_error = None
                await service.dispatcher.submit(service.on_wake_word)
                wake_beep.assert_called_once()
                assert service.orchestrator.state == TurnState.RECORDING
            finally:
                await service.stop()


class TestErrorEscalation:
    @pytest.mark.asyncio
    async def test_unclassified_error_shuts_down(self, service_factory):
        service = service_factory()
        runner = asyncio.create_task(service.run_forever())
        await asyncio.sleep(0.05)
        assert service.is_running

        def explode():
            raise RuntimeError("invariant broken")

        service.dispatcher.post(explode)
        await asyncio.wait_for(runner, timeout=2)

        assert not service.is_running
        assert service.arbiter.owner == MicrophoneOwner.NONE

    @pytest.mark.asyncio
    async def test_recoverable_error_returns_to_listening(self, service_factory, wait_until):
        service = service_factory()
        await service.start()
        try:
            await service.arbiter.release_all()

            def busy():
                raise MicrophoneBusy()

            service.dispatcher.post(busy)
            assert await wait_until(lambda: service.arbiter.is_listening)
            assert service.is_running
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_status(self, service_factory):
        service = service_factory()
        await service.start()
        try:
            status = service.get_status()
            assert status['running'] is True
            assert status['microphone']['owner'] == 'WAKE_WORD_LISTENER'
            assert status['conversation']['state'] == 'idle'
            assert status['wake_lock'] is True
        finally:
            await service.stop()
