"""
HTTP API for UnpackAI.

    from unpackai.api import create_app, run_server
"""

from unpackai.api.main import create_app, run_server

__all__ = ["create_app", "run_server"]
