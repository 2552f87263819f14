"""Domain models: runs, trigger modes and the config enums."""
