"""Image upload and black bar editing.

This package holds the pieces behind the web app in ``main.py``: the
Pillow-based image transformations, the blob store the uploads are kept
in, the pydantic models and the error types the HTTP layer turns into
error pages. See individual modules for details.
"""
