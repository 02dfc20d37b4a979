"""
core/password_generator.py
--------------------------
Stateless password generator backing POST /credentials/generate.

Uses the `secrets` CSPRNG for every draw, including the final shuffle.
"""

import secrets
from dataclasses import dataclass

UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
NUMBERS = "0123456789"
SPECIAL = "@!*&#$%^()_+-=[]{}|;:,.<>?"
AMBIGUOUS = "il1Lo0O"


@dataclass(frozen=True)
class PasswordOptions:
    length: int = 16
    uppercase: bool = True
    lowercase: bool = True
    numbers: bool = True
    special: bool = True
    min_numbers: int = 1
    min_special: int = 1
    avoid_ambiguous: bool = False


def _strip_ambiguous(chars: str, avoid: bool) -> str:
    if not avoid:
        return chars
    return "".join(c for c in chars if c not in AMBIGUOUS)


def generate_password(options: PasswordOptions) -> str:
    """
    Build a password honouring the minimum digit/special counts first, then
    filling the remaining length from the combined character set.

    Raises:
        ValueError: If no character class is enabled or the minimums do not
            fit in the requested length.
    """
    numbers = _strip_ambiguous(NUMBERS, options.avoid_ambiguous)
    special = SPECIAL

    charset = ""
    if options.uppercase:
        charset += UPPERCASE
    if options.lowercase:
        charset += LOWERCASE
    if options.numbers:
        charset += NUMBERS
    if options.special:
        charset += SPECIAL
    charset = _strip_ambiguous(charset, options.avoid_ambiguous)
    if not charset:
        raise ValueError("At least one character class must be enabled")

    required = []
    if options.numbers:
        required += [secrets.choice(numbers) for _ in range(options.min_numbers)]
    if options.special:
        required += [secrets.choice(special) for _ in range(options.min_special)]
    if len(required) > options.length:
        raise ValueError("Minimum character counts exceed the requested length")

    chars = required + [
        secrets.choice(charset) for _ in range(options.length - len(required))
    ]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
