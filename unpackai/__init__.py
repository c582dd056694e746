"""UnpackAI - personalized AI news refresh service.

This package provides the background job queue and worker pool that run
the content-refresh pipeline outside the HTTP request cycle.
"""

__version__ = "0.3.0"
__all__ = ["__version__"]
