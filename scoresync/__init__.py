"""scoresync: playback cursor timelines for paginated, multi-stave scores."""

__version__ = "0.1.0"
