"""
OpenWakeWord-based wake word engine.
"""

import asyncio
import os
import threading
import time
from typing import Dict, Any, Optional

import numpy as np

from ...interfaces.wake_word import WakeWordEngine
from ...utils.error_handling import EngineError
from ...utils.logging_config import get_logger

logger = get_logger("wakeword")


class OpenWakeWordEngine(WakeWordEngine):
    """
    Runs openwakeword over a sounddevice input stream on a daemon thread.

    The detection callback fires on that thread on each rising edge above
    the threshold, subject to a cooldown.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__()
        self.model_path: str = str(config.get('model_path', ''))
        self.inference_framework: str = str(config.get('inference_framework', 'onnx'))
        self.melspec_model_path: Optional[str] = config.get('melspec_model_path')
        self.embedding_model_path: Optional[str] = config.get('embedding_model_path')
        self.sample_rate: int = int(config.get('sample_rate', 16000))
        self.chunk: int = int(config.get('chunk', 1280))
        self.threshold: float = float(config.get('threshold', 0.3))
        self.cooldown_seconds: float = float(config.get('cooldown_seconds', 2.0))
        self.input_device_index: Optional[int] = config.get('input_device_index')
        self.latency = config.get('latency', 'low')
        self.stop_timeout: float = float(config.get('stop_timeout', 2.0))

        self._model = None
        self._stream = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._is_listening = False

    def _load_model(self):
        if self._model is not None:
            return self._model
        if not self.model_path or not os.path.exists(self.model_path):
            raise EngineError(f"Wake word model not found: {self.model_path!r}")

        # External import inside to avoid a hard dependency when not used
        from openwakeword.model import Model  # type: ignore

        kwargs: Dict[str, Any] = {
            'wakeword_models': [self.model_path],
            'inference_framework': self.inference_framework,
        }
        # Optional feature models are passed only when configured
        if self.melspec_model_path:
            kwargs['melspec_model_path'] = self.melspec_model_path
        if self.embedding_model_path:
            kwargs['embedding_model_path'] = self.embedding_model_path

        try:
            self._model = Model(**kwargs)
        except Exception as e:
            raise EngineError(f"Failed to load wake word model: {e}") from e
        logger.info("Loaded wake word model: %s (%s)", self.model_path, self.inference_framework)
        return self._model

    async def start(self) -> None:
        if self._is_listening:
            return

        model = await asyncio.to_thread(self._load_model)
        model.reset()

        try:
            import sounddevice as sd

            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype='int16',
                blocksize=self.chunk,
                device=self.input_device_index,
                latency=self.latency,
            )
            self._stream.start()
        except Exception as e:
            self._stream = None
            raise EngineError(f"Failed to open wake word input stream: {e}") from e

        self._stop_event.clear()
        self._is_listening = True
        self._thread = threading.Thread(target=self._listen_loop, name="wakeword-listener", daemon=True)
        self._thread.start()
        logger.info("Wake word listening started")

    def _listen_loop(self) -> None:
        previous_score = 0.0
        last_activation = 0.0
        while not self._stop_event.is_set():
            stream = self._stream
            if stream is None:
                break
            try:
                data, overflowed = stream.read(self.chunk)
            except Exception as e:
                if self._stop_event.is_set():
                    break
                logger.warning("Audio read error: %s", e)
                time.sleep(0.01)
                continue
            if overflowed:
                logger.debug("Input overflow")

            audio = np.asarray(data, dtype=np.int16).reshape(-1)
            scores = self._model.predict(audio)
            score = max(scores.values()) if scores else 0.0

            now = time.monotonic()
            rising_edge = previous_score <= self.threshold < score
            if rising_edge and now - last_activation > self.cooldown_seconds:
                last_activation = now
                logger.info("Wake word detected (score=%.3f)", score)
                try:
                    self._notify_detected()
                except Exception as e:
                    logger.error("Detection callback failed: %s", e)
            previous_score = float(score)

    async def stop(self) -> None:
        if not self._is_listening and self._stream is None:
            return
        self._stop_event.set()

        thread = self._thread
        self._thread = None
        try:
            if thread is not None:
                await asyncio.to_thread(thread.join, self.stop_timeout)
        finally:
            # Runs on cancellation too; the stream must not outlive stop()
            stream = self._stream
            self._stream = None
            self._is_listening = False
            if stream is not None:
                self._close_stream(stream)
        logger.info("Wake word listening stopped")

    @staticmethod
    def _close_stream(stream) -> None:
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            raise EngineError(f"Failed to close wake word stream: {e}") from e

    @property
    def is_listening(self) -> bool:
        return self._is_listening

    @property
    def capabilities(self) -> dict:
        caps = super().capabilities
        caps.update({
            'model_path': self.model_path,
            'inference_framework': self.inference_framework,
            'threshold': self.threshold,
        })
        return caps
