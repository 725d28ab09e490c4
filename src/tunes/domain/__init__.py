"""Domain layer - library synchronization and playback."""
