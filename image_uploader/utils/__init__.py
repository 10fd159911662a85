"""Utility modules: logging setup and the Pillow image layer."""
