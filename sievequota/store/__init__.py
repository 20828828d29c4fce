"""Key-value store backends."""
