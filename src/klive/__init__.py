"""KLive admin gateway and knowledge-base client."""

__version__ = "0.1.0"
