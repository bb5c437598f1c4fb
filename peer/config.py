"""
Peer configuration loaded from environment variables.
"""
import os

from dotenv import load_dotenv

from shared.constants import DEFAULT_TCP_PORT, DEFAULT_UDP_PORT

load_dotenv()


class Config:
    """Peer configuration."""

    # Network settings
    BIND_HOST: str = os.getenv("BATTLESHIP_BIND_HOST", "0.0.0.0")
    REMOTE_HOST: str = os.getenv("BATTLESHIP_REMOTE_HOST", "127.0.0.1")
    TCP_PORT: int = int(os.getenv("BATTLESHIP_TCP_PORT", str(DEFAULT_TCP_PORT)))
    UDP_PORT: int = int(os.getenv("BATTLESHIP_UDP_PORT", str(DEFAULT_UDP_PORT)))

    # UDP handshake: PING burst sent by the joining peer
    PING_BURST_COUNT: int = int(os.getenv("BATTLESHIP_PING_BURST", "3"))
    PING_INTERVAL: float = float(os.getenv("BATTLESHIP_PING_INTERVAL", "0.2"))

    # Headless play
    AUTOPLAY_DELAY: float = float(os.getenv("BATTLESHIP_AUTOPLAY_DELAY", "0.5"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


config = Config()
settings = config  # Alias
