"""Musical profiles of Spotify playlists."""

__version__ = "0.1.0"
