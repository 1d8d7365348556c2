"""Core utilities shared by the installer and the launcher."""
