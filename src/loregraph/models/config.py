"""Configuration constants for loregraph.

Default values used when the loaded configuration does not override them.
"""

# Storage
DEFAULT_DB_PATH = "data/loregraph.db"
DEFAULT_EMBEDDING_DIM = 1536
DEFAULT_OPERATION_TIMEOUT = 0.0  # seconds, 0 disables the deadline

# Session store
DEFAULT_SEARCH_LIMIT = 50

# Knowledge graph
DEFAULT_MAX_VISITED = 10000

# Graph RAG
DEFAULT_CONTEXT_LIMIT = 20
