"""
Capture permission check.
"""

from ..utils.logging_config import get_logger

logger = get_logger("recorder")


def input_device_available() -> bool:
    """True when the default input device can be queried."""
    try:
        import sounddevice as sd

        device = sd.query_devices(kind='input')
    except Exception as e:
        logger.warning("No usable input device: %s", e)
        return False
    return bool(device) and device.get('max_input_channels', 0) > 0
