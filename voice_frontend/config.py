"""
Configuration for the voice front end.
Organized into discrete feature sections for clarity.
"""

import os
import sys
from pathlib import Path
from typing import Dict, Any, Optional
from dotenv import load_dotenv


# =============================================================================
# SECTION 1: ENVIRONMENT
# =============================================================================

# Load environment variables from the repository root
parent_dir = Path(__file__).parent.parent
env_path = parent_dir / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else None


# =============================================================================
# SECTION 2: PROVIDER SELECTION
# =============================================================================

WAKEWORD_PROVIDER = "openwakeword"
RECORDER_PROVIDER = "sounddevice"
UPLOAD_PROVIDER = "http"
PLAYBACK_PROVIDER = "subprocess"
PRESS_SOURCE_PROVIDER = os.getenv("PRESS_SOURCE", "pynput")   # "pynput" or "none"


# =============================================================================
# SECTION 3: WAKE WORD
# =============================================================================

WAKEWORD_CONFIG = {
    "model_path": os.getenv("WAKEWORD_MODEL_PATH", "./audio_data/wake_word_models/hey_ari.onnx"),
    "inference_framework": os.getenv("WAKEWORD_FRAMEWORK", "onnx"),
    "melspec_model_path": os.getenv("WAKEWORD_MELSPEC_MODEL") or None,
    "embedding_model_path": os.getenv("WAKEWORD_EMBEDDING_MODEL") or None,
    "sample_rate": 16000,
    "chunk": 1280,
    "threshold": 0.3,
    "cooldown_seconds": 2.0,
    "input_device_index": _env_int("AUDIO_INPUT_DEVICE"),
}


# =============================================================================
# SECTION 4: RECORDING
# =============================================================================

RECORDING_CONFIG = {
    "directory": os.getenv("RECORDINGS_DIR", str(parent_dir / "recordings")),
    "channel_count": 1,
    "sample_rate": 16000,
    "bitrate": 128000,
    "sample_interval_ms": 200,            # Amplitude sample period
    "space_check_period_ms": 10000,       # Free-space recheck while recording
    "min_free_bytes": 50 * 1024 * 1024,
    "blocksize": 1024,
    "input_device_index": _env_int("AUDIO_INPUT_DEVICE"),
    "keep_recordings": _env_bool("KEEP_RECORDINGS", True),
}


# =============================================================================
# SECTION 5: LOCAL TRIGGERS (silence, button pattern)
# =============================================================================

SILENCE_CONFIG = {
    "enabled": _env_bool("SILENCE_DETECTION", True),
    "amplitude_threshold": 500,
    "duration_ms": 2500,
}

BUTTON_PATTERN_CONFIG = {
    "enabled": _env_bool("BUTTON_PATTERN", True),
    "required_count": 4,
    "window_ms": 2000,
    "boundary": "exclusive",   # "exclusive": a press exactly window_ms old has expired
    "monitored_keys": ["media_volume_up", "media_volume_down"],
}


# =============================================================================
# SECTION 6: MICROPHONE ARBITRATION
# =============================================================================
# Delays absorb asynchronous hardware release after a stop call returns.

ARBITER_CONFIG = {
    "settle_delay": 0.1,    # After every release, before anyone may acquire
    "guard_delay": 0.2,     # Extra wait before the recorder acquires
}


# =============================================================================
# SECTION 7: REMOTE ASSISTANT
# =============================================================================

UPLOAD_CONFIG = {
    "url": os.getenv("VOICE_API_URL", ""),
    "field_name": "file",
    "content_type": "audio/wav",
    "connect_timeout": 60,
    "read_timeout": 120,
    "headers": {
        "transcription": "X-Transcription",
        "response_text": "X-Response-Text",
        "continue": "X-Continue-Conversation",
    },
    "response_dir": os.getenv("RESPONSE_AUDIO_DIR") or None,
    "response_suffix": ".mp3",
}


# =============================================================================
# SECTION 8: PLAYBACK
# =============================================================================

PLAYBACK_CONFIG = {
    "command": os.getenv("PLAYER_COMMAND") or None,   # None = auto-detect
    "poll_interval": 0.05,
    "stop_timeout": 0.5,
}


# =============================================================================
# SECTION 9: SERVICE
# =============================================================================

SERVICE_CONFIG = {
    "shutdown_on_engine_failure": True,
    "wake_lock": os.getenv("WAKE_LOCK", "caffeinate" if sys.platform == "darwin" else "none"),
    "confirmation_beep": _env_bool("CONFIRMATION_BEEP", True),
    "require_input_device": True,
}


# =============================================================================
# SECTION 10: FRAMEWORK ASSEMBLY
# =============================================================================

def get_framework_config() -> Dict[str, Any]:
    """
    Assemble the complete front-end configuration.

    Returns:
        Dictionary of provider selections and feature sections
    """
    return {
        "wakeword": {
            "provider": WAKEWORD_PROVIDER,
            "config": WAKEWORD_CONFIG.copy()
        },
        "recorder": {
            "provider": RECORDER_PROVIDER,
            "config": RECORDING_CONFIG.copy()
        },
        "upload": {
            "provider": UPLOAD_PROVIDER,
            "config": {**UPLOAD_CONFIG, "headers": UPLOAD_CONFIG["headers"].copy()}
        },
        "playback": {
            "provider": PLAYBACK_PROVIDER,
            "config": PLAYBACK_CONFIG.copy()
        },
        "press_source": {
            "provider": PRESS_SOURCE_PROVIDER,
            "config": {"monitored_keys": list(BUTTON_PATTERN_CONFIG["monitored_keys"])}
        },
        "wake_lock": {
            "provider": SERVICE_CONFIG["wake_lock"],
            "config": {}
        },
        "silence": SILENCE_CONFIG.copy(),
        "button_pattern": {**BUTTON_PATTERN_CONFIG,
                           "monitored_keys": list(BUTTON_PATTERN_CONFIG["monitored_keys"])},
        "arbiter": ARBITER_CONFIG.copy(),
        "service": SERVICE_CONFIG.copy(),
    }


# =============================================================================
# SECTION 11: ENVIRONMENT PRESETS
# =============================================================================

# Active preset: "default", "dev", "prod", "test"
CONFIG_PRESET: str = os.getenv("CONFIG_PRESET", "default")


def set_active_preset(preset: str) -> None:
    """Set the active configuration preset."""
    global CONFIG_PRESET
    CONFIG_PRESET = preset


def get_active_preset() -> str:
    return CONFIG_PRESET


def get_development_config() -> Dict[str, Any]:
    """Keep every recording and skip the wake lock."""
    config = get_framework_config()
    config["recorder"]["config"]["keep_recordings"] = True
    config["wake_lock"]["provider"] = "none"
    return config


def get_production_config() -> Dict[str, Any]:
    config = get_framework_config()
    config["service"]["shutdown_on_engine_failure"] = True
    return config


def get_testing_config() -> Dict[str, Any]:
    """No hardware hooks, short delays."""
    config = get_framework_config()
    config["arbiter"]["settle_delay"] = 0.01
    config["arbiter"]["guard_delay"] = 0.02
    config["press_source"]["provider"] = "none"
    config["wake_lock"]["provider"] = "none"
    config["service"]["confirmation_beep"] = False
    config["service"]["require_input_device"] = False
    return config


def get_config_for_preset(preset: Optional[str] = None) -> Dict[str, Any]:
    """Return configuration based on preset name."""
    p = (preset or CONFIG_PRESET or "default").lower()
    if p in ("dev", "development"):
        return get_development_config()
    if p in ("prod", "production"):
        return get_production_config()
    if p in ("test", "testing"):
        return get_testing_config()
    return get_framework_config()


# =============================================================================
# SECTION 12: VALIDATION & DIAGNOSTICS
# =============================================================================

def validate_environment(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Check the parts of the configuration that depend on the host."""
    config = config or get_framework_config()
    results = {"valid": True, "errors": [], "warnings": [], "info": []}

    if not config["upload"]["config"].get("url"):
        results["errors"].append("Missing required: VOICE_API_URL")
        results["valid"] = False
    else:
        results["info"].append(f"Upload URL: {config['upload']['config']['url']}")

    model_path = config["wakeword"]["config"].get("model_path")
    if not model_path or not Path(model_path).exists():
        results["errors"].append(f"Wake word model not found: {model_path}")
        results["valid"] = False

    recordings = Path(config["recorder"]["config"]["directory"])
    if not recordings.exists():
        results["warnings"].append(f"Recordings directory will be created: {recordings}")

    from .providers.playback import detect_player_command
    if not config["playback"]["config"].get("command") and not detect_player_command():
        results["warnings"].append("No audio player found (afplay, ffplay or mpg123)")

    return results


def print_config_summary(config: Optional[Dict[str, Any]] = None):
    """Print a summary of the current configuration."""
    config = config or get_config_for_preset()
    print("=" * 60)
    print("🔧 Voice Front End Configuration")
    print("=" * 60)
    print(f"Preset: {get_active_preset()}")
    print(f"Wake Word: {config['wakeword']['provider']} ({config['wakeword']['config'].get('model_path')})")
    print(f"Recorder: {config['recorder']['provider']}")
    print(f"Upload: {config['upload']['provider']} → {config['upload']['config'].get('url') or '(unset)'}")
    print(f"Playback: {config['playback']['provider']}")
    print(f"Buttons: {config['press_source']['provider']}")
    print()
    silence = config["silence"]
    pattern = config["button_pattern"]
    arbiter = config["arbiter"]
    print(f"Silence: {'✅' if silence['enabled'] else '❌'} "
          f"(< {silence['amplitude_threshold']} for {silence['duration_ms']}ms)")
    print(f"Button pattern: {'✅' if pattern['enabled'] else '❌'} "
          f"({pattern['required_count']} presses in {pattern['window_ms']}ms, {pattern['boundary']})")
    print(f"Settle / guard delay: {arbiter['settle_delay']}s / {arbiter['guard_delay']}s")
    print()

    validation = validate_environment(config)
    if validation["valid"]:
        print("✅ Configuration Valid")
    else:
        print("❌ Configuration Issues:")
        for error in validation["errors"]:
            print(f"  - {error}")

    if validation["warnings"]:
        print("\n⚠️  Warnings:")
        for warning in validation["warnings"]:
            print(f"  - {warning}")

    print("=" * 60)
