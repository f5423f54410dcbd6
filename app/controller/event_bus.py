# app/controller/event_bus.py
from __future__ import annotations
from queue import Queue

# Keystrokes, verifier results and alerts share one queue so a single consumer
# thread applies them to the monitor in arrival order.
event_queue: Queue = Queue(maxsize=5000)
