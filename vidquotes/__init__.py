"""
Vid Quotes - Engine Package
Rendering, animation, capture/encode and batch export for animated quote videos.
"""

__version__ = "1.4.0"
