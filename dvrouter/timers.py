"""
Default timers and relay endpoint used by the distance-vector router.

The relay of the routing lab listens on port 2227 and expects routers to
advertise their minimum-cost vectors once per second.  Both values can be
overridden from the YAML configuration or the command line.
"""

DEFAULT_RELAY_HOST = "localhost"
DEFAULT_RELAY_PORT = 2227
UPDATE_INTERVAL_MS = 1000    # period of the mincost broadcast
FIRST_UPDATE_DELAY_MS = 0    # first broadcast fires right after initialisation
