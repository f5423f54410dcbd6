# core/hooks/keyboard_listener.py
from __future__ import annotations
from typing import Optional
from queue import Queue
from pynput import keyboard
import structlog

from .events import KeystrokeEvent, ENTER_CODE, SPACE_CODE
from core.utils.queueing import safe_put

log = structlog.get_logger()

SPECIAL_CODES = {
    keyboard.Key.enter: ENTER_CODE,
    keyboard.Key.space: SPACE_CODE,
    keyboard.Key.tab: 9,
}

def _key_to_code(k: keyboard.Key | keyboard.KeyCode) -> int:
    """Character code for the key, 0 when it produces no character (modifiers, arrows...)."""
    if isinstance(k, keyboard.KeyCode):
        ch = k.char
        return ord(ch) if ch and len(ch) == 1 else 0
    return SPECIAL_CODES.get(k, 0)

class KeyboardHook:
    """Background pynput keyboard listener emitting KeystrokeEvent into a queue."""
    def __init__(self, out_q: Queue):
        self.out_q = out_q
        self._listener: Optional[keyboard.Listener] = None

    def start(self) -> None:
        if self._listener and self._listener.running:
            return
        self._listener = keyboard.Listener(on_press=self._on_press, suppress=False)
        self._listener.daemon = True
        self._listener.start()
        log.info("kbd.start")

    def stop(self) -> None:
        if self._listener:
            self._listener.stop()
            self._listener = None
        log.info("kbd.stop")

    def _on_press(self, key, injected: bool = False):
        # injected presses come from software, not the person at the keyboard
        ev = KeystrokeEvent(char_code=_key_to_code(key), has_origin_view=not injected)
        safe_put(self.out_q, ev)
