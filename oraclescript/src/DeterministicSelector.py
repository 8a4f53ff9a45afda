"""DeterministicSelector: Seed-driven, bias-resistant provider selection.

The selection index is ``SHA3-256(seed) mod N``, where the 32-byte digest is
read as a big-endian base-256 number. The reduction is done byte by byte so
no intermediate value exceeds ``256 * N``:

    acc = 0
    for b in digest:
        acc = (acc * 256 + b) % N

select_index_precomputed() evaluates the same number as a sum of
``byte[i] * 256**(31 - i) mod N`` terms with the powers reduced up front.
Both formulations always agree.

.. code-block:: python

    >>> select_index(b"mumu 1234", 2)
    1
    >>> select_index(b"mumu 1234", 4) == select_index_precomputed(b"mumu 1234", 4)
    True
"""

from __future__ import annotations

import hashlib

from .errors import InvalidRequestError

DIGEST_SIZE = 32


def selection_digest(seed: bytes) -> bytes:
    """Hash a seed into the 32-byte value the selection is reduced from.

    :param seed: Arbitrary seed bytes.
    :returns: SHA3-256 digest.
    """
    return hashlib.sha3_256(seed).digest()


def _check_count(provider_count: int) -> None:
    if provider_count < 1:
        raise InvalidRequestError("provider_count must be at least 1")


def select_index(seed: bytes, provider_count: int) -> int:
    """Pick a provider index in ``[0, provider_count)`` from a seed.

    :param seed: Seed bytes (e.g., ``b"<seed> <time>"``).
    :param provider_count: Number of providers N.
    :returns: Selected index.
    :raises InvalidRequestError: If provider_count < 1.
    """
    _check_count(provider_count)
    acc = 0
    for byte in selection_digest(seed):
        acc = (acc * 256 + byte) % provider_count
    return acc


def select_index_precomputed(seed: bytes, provider_count: int) -> int:
    """Same selection as select_index(), using precomputed ``256**k mod N``.

    :param seed: Seed bytes.
    :param provider_count: Number of providers N.
    :returns: Selected index.
    :raises InvalidRequestError: If provider_count < 1.
    """
    _check_count(provider_count)
    # remainders[i] == 256 ** (31 - i) % N
    remainders = [0] * DIGEST_SIZE
    remainders[DIGEST_SIZE - 1] = 1 % provider_count
    for i in range(DIGEST_SIZE - 2, -1, -1):
        remainders[i] = remainders[i + 1] * 256 % provider_count

    acc = 0
    for byte, remainder in zip(selection_digest(seed), remainders):
        acc = (acc + byte * remainder % provider_count) % provider_count
    return acc
