"""
Service: guess_matching.py
Role:
- Decide whether a question reveals the asker's own password (winning guess).

Rule:
1. lower-case the password and the question,
2. split both on whitespace,
3. a password token `p` is found when len(p) >= MIN_TOKEN_LENGTH and some question token contains it,
4. the first found token (in password order) wins the game for the asker.

Substring matching is deliberate: "car?" or "cars" both reveal "car".
"""
from __future__ import annotations

from typing import List, Optional

# A password token must be longer than two characters to count
MIN_TOKEN_LENGTH = 3


def tokenize(text: Optional[str]) -> List[str]:
    return (text or "").lower().split()


def find_matching_token(password: Optional[str], question_text: Optional[str]) -> Optional[str]:
    """Return the first password token revealed by the question, or None."""
    question_tokens = tokenize(question_text)
    for token in tokenize(password):
        if len(token) < MIN_TOKEN_LENGTH:
            continue
        if any(token in candidate for candidate in question_tokens):
            return token
    return None


def is_correct_guess(password: Optional[str], question_text: Optional[str]) -> bool:
    return find_matching_token(password, question_text) is not None
