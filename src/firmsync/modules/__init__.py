"""Feature modules backed by the central routing store."""
