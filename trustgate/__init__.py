"""trustgate -- write-path trust gateway.

Rate limiting and content moderation for every content submission before it
reaches storage.
"""

__version__ = "0.1.0"
