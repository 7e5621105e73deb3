"""FitTrack backend: accounts plus AI-assisted report evaluation and plan generation."""

__version__ = "0.1.0"
