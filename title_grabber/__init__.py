"""Grab page and article titles from lists of URLs."""

from .config import GrabberConfig
from .crawler import TitleGrabber
from .models import GrabSummary, URLRecord

__all__ = ["GrabberConfig", "GrabSummary", "TitleGrabber", "URLRecord"]
__version__ = "0.1.0"
