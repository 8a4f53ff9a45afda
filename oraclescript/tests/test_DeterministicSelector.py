"""Unit tests for DeterministicSelector."""

import hashlib
from collections import Counter

import pytest

from oraclescript.src.DeterministicSelector import (
    select_index,
    select_index_precomputed,
    selection_digest,
)
from oraclescript.src.errors import InvalidRequestError

# Expected indices for provider counts 2..254.
MUMU_1234 = [
    1, 1, 1, 3, 1, 4, 1, 1, 3, 5, 1, 3, 11, 13, 9, 1, 1, 16, 13, 4, 5, 6, 1, 8, 3, 1,
    25, 20, 13, 3, 25, 16, 1, 18, 1, 19, 35, 16, 33, 9, 25, 14, 5, 28, 29, 23, 25, 4,
    33, 1, 29, 32, 1, 38, 25, 16, 49, 42, 13, 22, 3, 46, 25, 3, 49, 5, 1, 52, 53, 5, 1,
    37, 19, 58, 73, 60, 55, 65, 73, 1, 9, 16, 25, 18, 57, 49, 49, 18, 73, 81, 29, 34,
    23, 73, 25, 39, 53, 82, 33, 66, 1, 100, 81, 88, 85, 23, 1, 66, 93, 19, 25, 37, 73,
    98, 49, 55, 101, 18, 73, 82, 83, 91, 65, 8, 109, 54, 25, 100, 3, 117, 49, 130, 5,
    28, 1, 131, 121, 123, 53, 70, 5, 16, 73, 78, 37, 4, 93, 92, 133, 72, 73, 1, 137, 3,
    133, 123, 65, 85, 153, 144, 1, 156, 9, 148, 99, 86, 25, 16, 103, 73, 57, 70, 49,
    158, 137, 160, 107, 171, 73, 128, 81, 22, 121, 93, 127, 137, 117, 109, 73, 98, 25,
    169, 39, 133, 53, 196, 181, 74, 33, 139, 167, 165, 1, 173, 203, 190, 185, 16, 193,
    25, 85, 76, 23, 143, 1, 158, 175, 37, 93, 120, 19, 19, 25, 208, 37, 174, 73, 196,
    213, 214, 49, 135, 55, 23, 101, 223, 137, 198, 73, 80, 203, 163, 205, 53, 91, 16,
    65, 16, 133, 160, 109, 236, 181,
]

LULU_4321 = [
    0, 2, 2, 1, 2, 5, 6, 5, 6, 9, 2, 11, 12, 11, 6, 1, 14, 9, 6, 5, 20, 18, 14, 21, 24,
    23, 26, 10, 26, 7, 6, 20, 18, 26, 14, 34, 28, 11, 6, 11, 26, 35, 42, 41, 18, 8, 38,
    5, 46, 35, 50, 7, 50, 31, 54, 47, 10, 38, 26, 28, 38, 5, 6, 11, 20, 22, 18, 41, 26,
    31, 14, 61, 34, 71, 66, 75, 50, 67, 6, 50, 52, 81, 26, 1, 78, 68, 86, 74, 86, 89,
    18, 38, 8, 66, 38, 10, 54, 86, 46, 56, 86, 5, 102, 26, 60, 68, 50, 1, 86, 71, 54,
    100, 104, 41, 10, 50, 38, 103, 86, 108, 28, 11, 38, 121, 68, 14, 70, 35, 76, 4, 86,
    47, 22, 131, 86, 39, 110, 123, 26, 8, 102, 141, 86, 126, 134, 5, 34, 3, 146, 119,
    142, 86, 152, 131, 50, 18, 146, 113, 6, 110, 50, 58, 134, 86, 164, 53, 110, 102,
    86, 104, 78, 94, 68, 96, 86, 38, 74, 53, 86, 70, 180, 89, 110, 71, 38, 86, 102,
    131, 66, 19, 134, 161, 10, 11, 54, 160, 86, 197, 46, 89, 56, 68, 86, 11, 108, 41,
    102, 9, 26, 58, 166, 173, 68, 121, 158, 131, 110, 134, 86, 154, 182, 201, 166, 221,
    100, 76, 218, 122, 156, 152, 126, 171, 50, 196, 38, 146, 222, 234, 86, 1, 108, 212,
    150, 201, 134, 180, 38, 164, 246, 240, 194, 64, 14,
]

SCALEREMEMBER_1624128435 = [
    0, 2, 2, 4, 2, 1, 2, 5, 4, 2, 2, 4, 8, 14, 10, 10, 14, 4, 14, 8, 2, 4, 2, 9, 4, 23,
    22, 15, 14, 23, 10, 2, 10, 29, 14, 7, 4, 17, 34, 18, 8, 4, 2, 14, 4, 19, 26, 29,
    34, 44, 30, 30, 50, 24, 50, 23, 44, 8, 14, 27, 54, 50, 42, 4, 2, 55, 10, 50, 64,
    60, 50, 34, 44, 59, 42, 57, 56, 4, 74, 50, 18, 2, 50, 44, 4, 44, 2, 70, 14, 43, 50,
    23, 66, 4, 74, 25, 78, 68, 34, 9, 44, 19, 82, 29, 30, 24, 50, 70, 24, 44, 106, 112,
    80, 4, 102, 95, 8, 78, 74, 13, 88, 59, 54, 9, 50, 115, 42, 47, 4, 129, 2, 99, 122,
    104, 10, 117, 50, 17, 134, 113, 60, 134, 122, 44, 34, 29, 118, 50, 134, 125, 42,
    95, 134, 54, 134, 148, 4, 83, 74, 50, 50, 86, 18, 134, 2, 96, 50, 121, 44, 23, 90,
    3, 44, 134, 90, 8, 70, 53, 14, 106, 134, 149, 50, 44, 116, 112, 66, 50, 4, 165,
    170, 120, 122, 134, 78, 174, 68, 30, 34, 122, 110, 15, 146, 59, 122, 50, 186, 156,
    134, 80, 30, 131, 24, 4, 50, 85, 70, 107, 134, 95, 44, 118, 106, 59, 112, 94, 194,
    16, 4, 134, 218, 91, 212, 19, 126, 83, 78, 147, 74, 18, 134, 131, 210, 29, 182, 4,
    178, 2, 134, 11, 50, 211, 242,
]


def assert_all(seed: bytes, expected: list[int]) -> None:
    """Check a seed against its expected indices for N = 2..254."""
    for provider_count, index in zip(range(2, 255), expected):
        assert select_index(seed, provider_count) == index, provider_count


class TestSelectionDigest:
    """Test the selection hash."""

    def test_sha3_256(self) -> None:
        """Digest is SHA3-256 of the raw seed bytes."""
        assert selection_digest(b"mumu 1234") == hashlib.sha3_256(b"mumu 1234").digest()
        assert len(selection_digest(b"")) == 32


class TestSelectIndex:
    """Test the Horner-style reduction against known vectors."""

    def test_mumu(self) -> None:
        """Known indices for "mumu 1234"."""
        assert_all(b"mumu 1234", MUMU_1234)

    def test_lulu(self) -> None:
        """Known indices for "lulu 4321"."""
        assert_all(b"lulu 4321", LULU_4321)

    def test_long_seed(self) -> None:
        """Known indices for a word-list seed with a real timestamp."""
        assert_all(b"scaleremembernorthdeleteneighborhood 1624128435", SCALEREMEMBER_1624128435)

    def test_two_providers(self) -> None:
        """Seed "mumu 1234" with two providers selects index 1."""
        assert select_index(b"mumu 1234", 2) == 1

    def test_matches_big_integer(self) -> None:
        """Equals the digest read as a big-endian integer mod N."""
        digest = int.from_bytes(selection_digest(b"lulu 4321"), "big")
        for provider_count in (1, 2, 3, 4, 7, 255, 256, 1000, 2**40 + 3):
            assert select_index(b"lulu 4321", provider_count) == digest % provider_count

    def test_single_provider(self) -> None:
        """N = 1 always selects index 0."""
        assert select_index(b"anything", 1) == 0

    @pytest.mark.parametrize("provider_count", [0, -1])
    def test_invalid_count(self, provider_count: int) -> None:
        """N < 1 is rejected."""
        with pytest.raises(InvalidRequestError):
            select_index(b"mumu 1234", provider_count)
        with pytest.raises(InvalidRequestError):
            select_index_precomputed(b"mumu 1234", provider_count)

    def test_in_range(self) -> None:
        """Results always fall in [0, N)."""
        for i in range(200):
            assert 0 <= select_index(f"seed {i}".encode(), 5) < 5

    def test_roughly_uniform(self) -> None:
        """Selections spread over all providers."""
        counts = Counter(select_index(f"seed {i}".encode(), 4) for i in range(4000))
        assert set(counts) == {0, 1, 2, 3}
        # expected 1000 each; a fair hash stays far inside this band
        assert all(800 < count < 1200 for count in counts.values())


class TestSelectIndexPrecomputed:
    """Test the powers-of-256 formulation."""

    @pytest.mark.parametrize(
        "seed",
        [b"mumu 1234", b"lulu 4321", b"scaleremembernorthdeleteneighborhood 1624128435", b""],
    )
    def test_agrees_with_horner(self, seed: bytes) -> None:
        """Both formulations agree for every N in 1..300."""
        for provider_count in range(1, 301):
            assert select_index_precomputed(seed, provider_count) == select_index(seed, provider_count)

    def test_known_vector(self) -> None:
        """Reproduces the known vectors as well."""
        for provider_count, index in zip(range(2, 255), MUMU_1234):
            assert select_index_precomputed(b"mumu 1234", provider_count) == index
