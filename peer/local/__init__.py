"""
Local (headless) play.

Lets a peer play a match without a human at the keyboard.
"""

from .autopilot import Autopilot

__all__ = ["Autopilot"]
