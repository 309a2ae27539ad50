"""
Talk With Doc: a voice conversation with two AI personas about an open document.
"""

__version__ = "1.0.0"
