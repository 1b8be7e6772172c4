"""Run the live camera window.

Usage:
    uvicorn api.main:app --reload  # (separate, for API)
    python scripts/live_overlay.py  # (to see camera overlay window)

Keys: 'c'/space capture, 'r' reset, 'q' quit.
"""
import logging

from core.config import Settings
from core.live import run_live_overlay

if __name__ == '__main__':
    s = Settings()
    logging.basicConfig(level=getattr(logging, s.LOG_LEVEL.upper(), logging.INFO))
    run_live_overlay(s)
