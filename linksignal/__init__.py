"""linksignal - link identity resolution and trust-weighted signal scoring."""

__version__ = "0.1.0"
