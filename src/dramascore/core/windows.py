"""Window builder: bounded text slices per episode."""

from typing import List, Optional

from ..config import Tokenizer
from .language import detokenize, tokenize
from .models import Episode, EpisodeWindow

HEAD_TOKENS = 500
TAIL_TOKENS = 350
NEXT_HEAD_TOKENS = 100
PAYWALL_CONTEXT_TOKENS = 350
PAYWALL_PRE_TOKENS = 1000
PAYWALL_POST_TOKENS = 400

PAYWALL_TOKEN = '[PAYWALL]'


def paywall_token_index(tokens: List[str], tokenizer: Tokenizer) -> int:
    """Index of the token holding the first [PAYWALL] marker, or -1."""
    if tokenizer == Tokenizer.WHITESPACE:
        for i, token in enumerate(tokens):
            if PAYWALL_TOKEN in token.upper():
                return i
        return -1

    joined = detokenize(tokens, tokenizer)
    char_index = joined.upper().find(PAYWALL_TOKEN)
    if char_index < 0:
        return -1
    if tokenizer == Tokenizer.CHAR_FALLBACK:
        return char_index

    cursor = 0
    for i, token in enumerate(tokens):
        cursor += len(token)
        if cursor > char_index:
            return i
    return -1


def build_window(
    episode: Episode,
    tokenizer: Tokenizer,
    next_episode: Optional[Episode] = None,
) -> EpisodeWindow:
    tokens = tokenize(episode.text, tokenizer)
    next_tokens = tokenize(next_episode.text, tokenizer) if next_episode else []

    def join(part: List[str]) -> str:
        return detokenize(part, tokenizer)

    tail_tokens = tokens[-TAIL_TOKENS:]
    next_head_tokens = next_tokens[:NEXT_HEAD_TOKENS]
    window = EpisodeWindow(
        episode=episode.number,
        tokens_total=len(tokens),
        head=join(tokens[:HEAD_TOKENS]),
        tail=join(tail_tokens),
        next_head=join(next_head_tokens),
        hook_context=join(tail_tokens + next_head_tokens),
    )

    index = paywall_token_index(tokens, tokenizer) if episode.paywall_count > 0 else -1
    if index >= 0:
        window.paywall_context = join(
            tokens[max(0, index - PAYWALL_CONTEXT_TOKENS):index + PAYWALL_CONTEXT_TOKENS]
        )
        window.paywall_pre = join(tokens[max(0, index - PAYWALL_PRE_TOKENS):index])
        window.paywall_post = join(tokens[index:index + PAYWALL_POST_TOKENS])
    return window


def build_windows(episodes: List[Episode], tokenizer: Tokenizer) -> List[EpisodeWindow]:
    """One window per episode; `next_head` comes from the following episode."""
    return [
        build_window(episode, tokenizer, episodes[i + 1] if i + 1 < len(episodes) else None)
        for i, episode in enumerate(episodes)
    ]
