"""nocturne-installer - platform-aware installer for nocturne-miner."""

__version__ = "0.3.0"
