"""
Game and protocol constants for networked Battleship.
"""

# Board
BOARD_SIZE = 10

# Standard fleet: (name, size)
STANDARD_FLEET = [
    ("Carrier", 5),
    ("Battleship", 4),
    ("Cruiser", 3),
    ("Submarine", 3),
    ("Destroyer", 2),
]
TOTAL_SHIPS = len(STANDARD_FLEET)

# Network defaults
DEFAULT_TCP_PORT = 5000
DEFAULT_UDP_PORT = 5001

# Wire format
SEPARATOR = ":"
COORD_SEPARATOR = ","
NULL_VALUE = "null"
PORT_EXCHANGE_PREFIX = "UDP_PORT"

# Unreliable channel guards
MIN_DATAGRAM_LENGTH = 4  # len("PING")
MAX_DATAGRAM_LENGTH = 1000
UDP_RECV_BUFFER = 1024
UDP_QUEUE_SIZE = 256  # datagrams waiting for the receive loop

# Scoring
POINTS_PER_HIT = 1
POINTS_PER_SUNK = 5
VICTORY_BONUS = 50
