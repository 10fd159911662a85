"""Core shared components for image_uploader.

Value types, the error taxonomy and option validation used by every
service.
"""
