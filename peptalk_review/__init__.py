"""Compliance review and plain-language summarization for synthesized peptide pages."""

__version__ = "1.0.0"
