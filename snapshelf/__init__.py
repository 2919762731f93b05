"""Snapshelf: private and shared photo storage with delete authorization."""
__version__ = "0.1.0"
