"""
Shared constants for Site Updater.
"""

# Per-installation state directory (holds db.json and settings.json)
STATE_DIR = ".updater"

# Index document name, both locally (in STATE_DIR) and on every update site
INDEX_FILENAME = "db.json"

# Local settings file (in STATE_DIR)
SETTINGS_FILENAME = "settings.json"

# Staged downloads land here before being moved into place
STAGING_DIR = "update"

# In-flight download suffix; a file with this suffix is never a valid stage
PART_SUFFIX = ".part"

# Directories scanned for local-only files
DEFAULT_MANAGED_DIRS = ("jars", "plugins", "macros", "scripts", "lib")

# Index format version written to db.json
INDEX_VERSION = "1.0"

# Large file threshold for reducing download concurrency (500MB)
LARGE_FILE_THRESHOLD = 500_000_000

# Hash read size
HASH_CHUNK_SIZE = 65536
