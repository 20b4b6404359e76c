"""HTML to Image API: URL in, optimized screenshot out."""

__version__ = "1.0.0"
