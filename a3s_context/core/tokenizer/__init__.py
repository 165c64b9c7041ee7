"""
Tokenizer module for token counting and truncation.

Digest budgets (Brief ~50 tokens, Summary ~500 tokens) are measured with
tiktoken, with a fast character-ratio approximation for offline use.
"""

from a3s_context.config import TokenizerConfig
from a3s_context.core.tokenizer.tokenizer import Tokenizer

__all__ = ["Tokenizer", "TokenizerConfig"]
