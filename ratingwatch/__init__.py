"""Ratingwatch: analyst rating changes API with ranked recommendations."""

__version__ = "1.0.0"
