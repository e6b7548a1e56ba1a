"""
Short fire-and-forget notification tones.

Played on a daemon thread through whatever system player exists.
Never raises to callers.
"""

import os
import sys
import subprocess
import threading
from shutil import which

# kind -> (macOS system sounds, freedesktop event ids)
TONES = {
    "wake": (["Ping", "Glass"], ["message-new-instant", "bell"]),
    "error": (["Basso", "Sosumi"], ["dialog-error", "bell"]),
}


def beep_wake_detected() -> None:
    play_tone("wake")


def beep_error() -> None:
    play_tone("error")


def play_tone(kind: str) -> None:
    mac_sounds, linux_ids = TONES.get(kind, TONES["wake"])
    try:
        threading.Thread(target=_play, args=(mac_sounds, linux_ids), daemon=True).start()
    except RuntimeError:
        _bell()


def _run_quietly(args) -> bool:
    try:
        subprocess.run(args, check=False, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        return True
    except OSError:
        return False


def _play(mac_sounds, linux_ids) -> None:
    if sys.platform == "darwin" and which("afplay"):
        for sound in mac_sounds:
            candidate = f"/System/Library/Sounds/{sound}.aiff"
            if os.path.exists(candidate) and _run_quietly(["afplay", candidate]):
                return

    if which("canberra-gtk-play"):
        for event_id in linux_ids:
            if _run_quietly(["canberra-gtk-play", "--id", event_id]):
                return

    bell = "/usr/share/sounds/freedesktop/stereo/bell.oga"
    if which("paplay") and os.path.exists(bell) and _run_quietly(["paplay", bell]):
        return

    _bell()


def _bell() -> None:
    try:
        sys.stdout.write("\a")
        sys.stdout.flush()
    except (OSError, ValueError):
        pass
