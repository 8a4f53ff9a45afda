"""ECVRF-EDWARDS25519-SHA512-TAI (RFC 9381, suite 0x03).

Sizes: 32-byte public key, 80-byte proof (Gamma || c || s), 64-byte beta.
Curve arithmetic is delegated to the ``ecdsa`` package's Edwards25519
implementation; points are serialized with the RFC 8032 encoding.

.. code-block:: python

    >>> secret = bytes(32)
    >>> public_key = derive_public_key(secret)
    >>> proof = prove(secret, b"alpha")
    >>> verify(public_key, proof, b"alpha") == (True, proof_to_hash(proof))
    True
"""

from __future__ import annotations

import hashlib

from ecdsa.eddsa import curve_ed25519, generator_ed25519
from ecdsa.ellipticcurve import INFINITY, PointEdwards
from ecdsa.errors import MalformedPointError

from .errors import VRFVerificationError

SUITE_STRING = b"\x03"
PUBLIC_KEY_SIZE = 32
PROOF_SIZE = 80
BETA_SIZE = 64

_POINT_SIZE = 32
_C_SIZE = 16
_S_SIZE = 32
_COFACTOR = 8
_P = curve_ed25519.p()
_ORDER = generator_ed25519.order()
# Order of the full curve group; (-c) modulo this negates any curve point.
_GROUP_ORDER = _COFACTOR * _ORDER
_IDENTITY_ENCODING = b"\x01" + bytes(31)


def _hash(data: bytes) -> bytes:
    return hashlib.sha512(data).digest()


def _is_identity(point) -> bool:
    return point == INFINITY or (point.x() == 0 and point.y() == 1)


def _encode_point(point) -> bytes:
    if point == INFINITY:
        return _IDENTITY_ENCODING
    x, y = point.x(), point.y()
    return (y | (x & 1) << 255).to_bytes(_POINT_SIZE, "little")


def _decode_point(data: bytes) -> PointEdwards | None:
    if len(data) != _POINT_SIZE:
        return None
    if int.from_bytes(data, "little") & ((1 << 255) - 1) >= _P:
        return None
    try:
        return PointEdwards.from_bytes(curve_ed25519, data)
    except MalformedPointError:
        return None


def _add(a, b):
    if a == INFINITY:
        return b
    if b == INFINITY:
        return a
    return a + b


def _mul(point, scalar: int):
    if point == INFINITY or scalar == 0:
        return INFINITY
    return point * scalar


def _encode_to_curve(public_key: bytes, alpha: bytes) -> PointEdwards:
    for ctr in range(256):
        digest = _hash(SUITE_STRING + b"\x01" + public_key + alpha + bytes([ctr]) + b"\x00")
        candidate = _decode_point(digest[:_POINT_SIZE])
        if candidate is None:
            continue
        point = _mul(candidate, _COFACTOR)
        if not _is_identity(point):
            return point
    raise VRFVerificationError(VRFVerificationError.INVALID_GAMMA, "encode_to_curve exhausted")


def _challenge(*points) -> int:
    data = SUITE_STRING + b"\x02" + b"".join(_encode_point(p) for p in points) + b"\x00"
    return int.from_bytes(_hash(data)[:_C_SIZE], "little")


def _secret_scalar(secret_key: bytes) -> tuple[int, bytes]:
    if len(secret_key) != 32:
        raise VRFVerificationError(VRFVerificationError.INVALID_KEY_LENGTH, "secret key must be 32 bytes")
    digest = bytearray(_hash(secret_key))
    digest[0] &= 248
    digest[31] &= 127
    digest[31] |= 64
    return int.from_bytes(digest[:32], "little"), bytes(digest[32:])


def derive_public_key(secret_key: bytes) -> bytes:
    """Derive the 32-byte public key for a 32-byte secret key.

    :param secret_key: 32-byte secret key (RFC 8032 seed).
    :returns: Encoded public key.
    """
    scalar, _ = _secret_scalar(secret_key)
    return _encode_point(_mul(generator_ed25519, scalar))


def prove(secret_key: bytes, alpha: bytes) -> bytes:
    """Produce a VRF proof of ``alpha`` under ``secret_key``.

    :param secret_key: 32-byte secret key.
    :param alpha: Message bytes.
    :returns: 80-byte proof.
    """
    scalar, nonce_prefix = _secret_scalar(secret_key)
    public_point = _mul(generator_ed25519, scalar)
    public_key = _encode_point(public_point)

    h_point = _encode_to_curve(public_key, alpha)
    gamma = _mul(h_point, scalar)
    k = int.from_bytes(_hash(nonce_prefix + _encode_point(h_point)), "little") % _ORDER
    c = _challenge(
        public_point,
        h_point,
        gamma,
        _mul(generator_ed25519, k),
        _mul(h_point, k),
    )
    s = (k + c * scalar) % _ORDER
    return _encode_point(gamma) + c.to_bytes(_C_SIZE, "little") + s.to_bytes(_S_SIZE, "little")


def proof_to_hash(proof: bytes) -> bytes:
    """Derive the 64-byte VRF output (beta) from a proof.

    Does not verify the proof.

    :param proof: 80-byte proof.
    :returns: 64-byte beta.
    :raises VRFVerificationError: If the proof cannot be decoded.
    """
    if len(proof) != PROOF_SIZE:
        raise VRFVerificationError(VRFVerificationError.INVALID_PROOF_LENGTH)
    gamma = _decode_point(proof[:_POINT_SIZE])
    if gamma is None:
        raise VRFVerificationError(VRFVerificationError.INVALID_GAMMA)
    return _hash(SUITE_STRING + b"\x03" + _encode_point(_mul(gamma, _COFACTOR)) + b"\x00")


def verify(public_key: bytes, proof: bytes, alpha: bytes) -> tuple[bool, bytes | None]:
    """Verify a VRF proof.

    :param public_key: 32-byte public key.
    :param proof: 80-byte proof.
    :param alpha: Message bytes the proof was produced over.
    :returns: ``(True, beta)`` if the proof is valid, ``(False, None)`` otherwise.
    :raises VRFVerificationError: If the key or proof cannot be decoded.
    """
    if len(public_key) != PUBLIC_KEY_SIZE:
        raise VRFVerificationError(VRFVerificationError.INVALID_KEY_LENGTH)
    public_point = _decode_point(public_key)
    if public_point is None or _is_identity(_mul(public_point, _COFACTOR)):
        raise VRFVerificationError(VRFVerificationError.INVALID_PUBLIC_KEY)

    if len(proof) != PROOF_SIZE:
        raise VRFVerificationError(VRFVerificationError.INVALID_PROOF_LENGTH)
    gamma = _decode_point(proof[:_POINT_SIZE])
    if gamma is None:
        raise VRFVerificationError(VRFVerificationError.INVALID_GAMMA)
    c = int.from_bytes(proof[_POINT_SIZE:_POINT_SIZE + _C_SIZE], "little")
    s = int.from_bytes(proof[_POINT_SIZE + _C_SIZE:], "little")
    if s >= _ORDER:
        raise VRFVerificationError(VRFVerificationError.INVALID_SCALAR)

    h_point = _encode_to_curve(public_key, alpha)
    minus_c = -c % _GROUP_ORDER
    u = _add(_mul(generator_ed25519, s), _mul(public_point, minus_c))
    v = _add(_mul(h_point, s), _mul(gamma, minus_c))

    if _challenge(public_point, h_point, gamma, u, v) != c:
        return False, None
    return True, proof_to_hash(proof)
