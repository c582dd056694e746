"""Command-line interface for UnpackAI."""
