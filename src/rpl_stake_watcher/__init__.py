"""
RPL Stake Watcher.

Monitors Rocket Pool validators through the beaconcha.in API and sends a
Discord alert when a node's RPL collateral drops below the required minimum.
Repeat alerts for the same validator are throttled by a cooldown window.
"""

__version__ = "0.1.0"
