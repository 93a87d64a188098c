"""Control a Minecraft server over RCON"""

__version__ = '0.1'

from .rcon import (  # noqa: E402
    RconConnection,
    RconError,
    RconAuthError,
    RconConnectionError,
    RconNotConnectedError,
    connect,
)
