"""Seeded pseudo-random source for reproducible schedules.

Every randomized choice in the generator (jitter, tie-breaks, coin flips,
optimizer picks) draws from one of these, so a seed string fully determines
the output.
"""

MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    """32-bit wrapping multiply."""
    return (a * b) & MASK32


def hash_seed(seed) -> int:
    """Mix any seed value into a 32-bit unsigned state."""
    s = str(seed)
    h = (1779033703 ^ len(s)) & MASK32
    for ch in s:
        h = _imul(h ^ ord(ch), 3432918353)
        h = ((h << 13) | (h >> 19)) & MASK32
    # both shifts read the pre-multiply h
    return (_imul(h ^ (h >> 16), 2246822507) ^ (h >> 13)) & MASK32


def create_seeded_rng(seed):
    """Return a callable producing uniform floats in [0, 1) from `seed`."""
    state = hash_seed(seed)

    def rng() -> float:
        nonlocal state
        state = (state + 0x6D2B79F5) & MASK32
        t = state
        r = _imul(t ^ (t >> 15), t | 1)
        r ^= (r + _imul(r ^ (r >> 7), r | 61)) & MASK32
        return ((r ^ (r >> 14)) & MASK32) / 4294967296

    return rng
