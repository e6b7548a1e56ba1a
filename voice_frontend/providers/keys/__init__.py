from .pynput_press_source import KeyPressSource, NullPressSource

__all__ = ['KeyPressSource', 'NullPressSource']
