"""Users module - principals stored in the central routing store."""
