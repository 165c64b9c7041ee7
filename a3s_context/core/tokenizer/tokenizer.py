"""
Token counting and truncation for digest budgets.

Uses tiktoken for accurate OpenAI-compatible token counting with a
character-based approximation mode for offline use.
"""

import tiktoken

from a3s_context.config import TokenizerConfig


class Tokenizer:
    """
    Token counter used to size Brief and Summary digests.

    Usage:
        tokenizer = Tokenizer()
        count = tokenizer.count_tokens("Hello world")
        brief = tokenizer.truncate(long_text, 50)
    """

    def __init__(self, config: TokenizerConfig | None = None):
        """
        Initialize tokenizer with configuration.

        Args:
            config: Optional tokenizer configuration. Uses defaults if not provided.
        """
        self.config = config or TokenizerConfig()
        self._encoder: tiktoken.Encoding | None = None

    @property
    def approximate(self) -> bool:
        return self.config.provider == "approximate"

    @property
    def encoder(self) -> tiktoken.Encoding:
        """Lazy-load tiktoken encoder."""
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding(self.config.model)
        return self._encoder

    def count_tokens(self, text: str) -> int:
        """
        Count tokens (exact with tiktoken, estimated in approximate mode).
        """
        if not text:
            return 0

        if self.approximate:
            return self.estimate_tokens(text)

        return len(self.encoder.encode(text))

    def estimate_tokens(self, text: str) -> int:
        """
        Fast approximate token count using the configured chars_per_token ratio.
        """
        if not text:
            return 0
        return max(1, round(len(text) / self.config.chars_per_token))

    def fits(self, text: str, max_tokens: int) -> bool:
        return self.count_tokens(text) <= max_tokens

    def truncate(self, text: str, max_tokens: int) -> str:
        """
        Cut text down to at most max_tokens.

        In approximate mode the cut falls on the last word boundary inside
        the character budget when there is one.

        Args:
            text: Text to truncate
            max_tokens: Token budget

        Returns:
            Text unchanged if it fits, else its longest prefix that fits
        """
        if max_tokens <= 0 or not text:
            return ""
        if self.fits(text, max_tokens):
            return text

        if self.approximate:
            budget = int(max_tokens * self.config.chars_per_token)
            cut = text[:budget]
            boundary = cut.rfind(" ")
            if boundary > budget // 2:
                cut = cut[:boundary]
            return cut.rstrip()

        return self.detokenize(self.tokenize(text)[:max_tokens]).rstrip()

    def tokenize(self, text: str) -> list[int]:
        """Get token IDs for text."""
        if not text:
            return []
        return self.encoder.encode(text)

    def detokenize(self, tokens: list[int]) -> str:
        """Convert token IDs back to text."""
        if not tokens:
            return ""
        return self.encoder.decode(tokens)
