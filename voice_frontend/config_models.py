"""
Pydantic configuration models with validation.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, Dict, Any, List
from urllib.parse import urlparse

from .utils.press_pattern import WindowBoundary


class WakeWordConfig(BaseModel):
    """Wake word engine configuration."""
    model_path: str = Field(..., description="Keyword model file")
    inference_framework: str = Field("onnx", description="openwakeword backend")
    melspec_model_path: Optional[str] = Field(None, description="Optional feature model")
    embedding_model_path: Optional[str] = Field(None, description="Optional feature model")
    sample_rate: int = Field(16000, ge=8000, le=48000, description="Sample rate")
    chunk: int = Field(1280, ge=128, le=8192, description="Frames per read")
    threshold: float = Field(0.3, ge=0.0, le=1.0, description="Detection threshold")
    cooldown_seconds: float = Field(2.0, ge=0.0, description="Cooldown after detection")
    input_device_index: Optional[int] = Field(None, description="Audio input device index")

    @field_validator('inference_framework')
    @classmethod
    def validate_framework(cls, v):
        if v not in ('onnx', 'tflite'):
            raise ValueError("inference_framework must be 'onnx' or 'tflite'")
        return v


class RecordingConfig(BaseModel):
    """Capture configuration."""
    directory: str = Field("./recordings", description="Where recordings are written")
    channel_count: int = Field(1, ge=1, le=2)
    sample_rate: int = Field(16000, ge=8000, le=48000)
    bitrate: int = Field(128000, ge=8000)
    sample_interval_ms: int = Field(200, ge=10, le=5000, description="Amplitude sample period")
    space_check_period_ms: int = Field(10000, ge=100, description="Free-space recheck period")
    min_free_bytes: int = Field(50 * 1024 * 1024, ge=0)
    blocksize: int = Field(1024, ge=64)
    input_device_index: Optional[int] = None
    keep_recordings: bool = True


class SilenceConfig(BaseModel):
    enabled: bool = True
    amplitude_threshold: int = Field(500, ge=0, le=32768, description="Quiet below this level")
    duration_ms: float = Field(2500, ge=0, description="Quiet span that stops recording")


class ButtonPatternConfig(BaseModel):
    enabled: bool = True
    required_count: int = Field(4, ge=1, description="Presses needed")
    window_ms: float = Field(2000, ge=0, description="Trailing window")
    boundary: WindowBoundary = Field(WindowBoundary.EXCLUSIVE)
    monitored_keys: List[str] = Field(default_factory=lambda: ["media_volume_up", "media_volume_down"])


class ArbiterConfig(BaseModel):
    settle_delay: float = Field(0.1, ge=0.0, le=5.0, description="Wait after every release")
    guard_delay: float = Field(0.2, ge=0.0, le=5.0, description="Extra wait before recording")


class UploadConfig(BaseModel):
    """Remote assistant endpoint."""
    url: str = Field("", description="Endpoint receiving the recording")
    field_name: str = "file"
    content_type: str = "audio/wav"
    connect_timeout: float = Field(60, gt=0)
    read_timeout: float = Field(120, gt=0)
    headers: Dict[str, str] = Field(default_factory=dict)
    response_dir: Optional[str] = None
    response_suffix: str = ".mp3"

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        if v and urlparse(v).scheme not in ('http', 'https'):
            raise ValueError('url must use http or https')
        return v

    @field_validator('headers')
    @classmethod
    def validate_headers(cls, v):
        unknown = set(v) - {'transcription', 'response_text', 'continue'}
        if unknown:
            raise ValueError(f'Unknown header keys: {sorted(unknown)}')
        return v


class PlaybackConfig(BaseModel):
    command: Optional[Any] = Field(None, description="Player command, None to auto-detect")
    poll_interval: float = Field(0.05, gt=0)
    stop_timeout: float = Field(0.5, gt=0)


class ServiceConfig(BaseModel):
    shutdown_on_engine_failure: bool = True
    wake_lock: str = "none"
    confirmation_beep: bool = True
    require_input_device: bool = True

    @field_validator('wake_lock')
    @classmethod
    def validate_wake_lock(cls, v):
        if v not in ('none', 'caffeinate'):
            raise ValueError("wake_lock must be 'none' or 'caffeinate'")
        return v


class ProviderSelection(BaseModel):
    provider: str
    config: Dict[str, Any] = Field(default_factory=dict)


class FrontendConfig(BaseModel):
    """Complete front-end configuration."""
    wakeword: WakeWordConfig
    recorder: RecordingConfig
    upload: UploadConfig
    playback: PlaybackConfig
    silence: SilenceConfig
    button_pattern: ButtonPatternConfig
    arbiter: ArbiterConfig
    service: ServiceConfig
    providers: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode='after')
    def validate_consistency(self):
        if self.recorder.sample_interval_ms > self.silence.duration_ms > 0:
            raise ValueError('Amplitude sample interval exceeds the silence duration')
        return self

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'FrontendConfig':
        """Validate the dictionary produced by ``get_framework_config``."""
        providers = {}
        sections = {}
        for name in ('wakeword', 'recorder', 'upload', 'playback'):
            selection = ProviderSelection(**config[name])
            providers[name] = selection.provider
            sections[name] = selection.config
        for name in ('press_source', 'wake_lock'):
            if name in config:
                providers[name] = ProviderSelection(**config[name]).provider

        return cls(
            wakeword=WakeWordConfig(**sections['wakeword']),
            recorder=RecordingConfig(**sections['recorder']),
            upload=UploadConfig(**sections['upload']),
            playback=PlaybackConfig(**sections['playback']),
            silence=SilenceConfig(**config.get('silence', {})),
            button_pattern=ButtonPatternConfig(**config.get('button_pattern', {})),
            arbiter=ArbiterConfig(**config.get('arbiter', {})),
            service=ServiceConfig(**config.get('service', {})),
            providers=providers,
        )
