"""Shell adapters — process execution and manifest I/O."""
