"""VidTube — account and channel-profile backend for a video-sharing app.

Registration with avatar/cover upload, credential login, JWT access/refresh
token rotation, channel profiles with subscriber counts, and watch history.
"""

__version__ = "0.1.0"
