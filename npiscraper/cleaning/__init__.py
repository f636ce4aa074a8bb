"""Cleaning module - text and link normalization."""

from .normalizer import BaseNormalizer, LinkResolver, TextNormalizer

__all__ = ["BaseNormalizer", "LinkResolver", "TextNormalizer"]
