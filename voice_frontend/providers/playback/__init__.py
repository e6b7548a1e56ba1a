from .subprocess_player import SubprocessPlayer, detect_player_command

__all__ = ['SubprocessPlayer', 'detect_player_command']
