"""
Shared constants for the review pipeline.
"""

# Record serialization
SEMANTIC_BLOCK_SEPARATOR = "\n\n"
FAST_CONTENT_SEPARATOR = " "

# Citation markers recognised next to effect claims
CITATION_MARKER_PATTERN = r"\[(PMID:|NCT:)"

# Summaries
TRUNCATION_MARKER = "..."

# Scoring
MAX_SCORE = 100
MIN_PASSING_FAST_SCORE = 70
FAST_SCORE_PENALTY_PER_ISSUE = 10
