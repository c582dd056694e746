"""Core services shared by the API, CLI and worker processes."""
