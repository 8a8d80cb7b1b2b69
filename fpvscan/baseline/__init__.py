"""Per-frequency rolling noise-floor tracking."""
