"""Shared constants for worldgrid.

Centralizes values used across multiple modules to ensure consistency.
"""

# A village grid cell is VILLAGE_SIZE x VILLAGE_SIZE game tiles
VILLAGE_SIZE = 20

# Game tile size in pixels
TILE_SIZE = 40

# Tiled gid flip flags (top 3 bits of a 32-bit tile id)
FLIPPED_HORIZONTALLY_FLAG = 0x80000000
FLIPPED_VERTICALLY_FLAG = 0x40000000
FLIPPED_DIAGONALLY_FLAG = 0x20000000
FLIP_MASK = ~(
    FLIPPED_HORIZONTALLY_FLAG | FLIPPED_VERTICALLY_FLAG | FLIPPED_DIAGONALLY_FLAG
) & 0xFFFFFFFF

# Tile layers whose name starts with this (case-insensitive) are obstacles
COLLISION_LAYER_PREFIX = "layer1"

# Tileset defaults when a descriptor omits a field
DEFAULT_TILESET_COLUMNS = 1
DEFAULT_TILESET_TILECOUNT = 1
DEFAULT_TILESET_TILE_SIZE = 40

# Alpha-channel collision analysis
ALPHA_THRESHOLD = 50  # alpha > 50/255 counts as opaque
ALPHA_SAMPLES_PER_SIDE = 5
ALPHA_OPAQUE_RATIO = 0.3

# Agent spawning
DEFAULT_MOVE_INTERVAL_MS = 800
DEFAULT_SPRITE_HEIGHT = 40
DEFAULT_AGENT_NAME = "Deployed Agent"
SPAWN_SEARCH_RADIUS = 10

# Key-value store layout
VILLAGE_KEY_PREFIX = "village:"
VILLAGE_GRID_PREFIX = "village:grid:"
VILLAGES_ALL_KEY = "villages:all"
