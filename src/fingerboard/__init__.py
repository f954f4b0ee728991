"""fingerboard — violin fingering overlays for recognised sheet music."""

__version__ = "0.1.0"
