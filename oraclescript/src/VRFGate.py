"""VRFGate: Verify a provider's VRF proof before releasing its randomness.

A provider answers with a fixed-length hex string: the first
``proof_length`` characters are the proof, the rest is the VRF output
(beta). Validators each submit that string; they are reconciled by strict
majority before the gate runs.

Outcomes of the verification call:
    - proof valid: the output is released according to the output policy
    - proof invalid, or beta differs from the proof's output: ProofRejectedError
    - verifier failure: VRFVerificationError with the verifier's code
"""

from __future__ import annotations

import hashlib
import logging
import string
from collections import Counter
from typing import Callable

from . import ecvrf
from .errors import MalformedResponseError, NoMajorityError, ProofRejectedError

logger = logging.getLogger(__name__)

# (public_key, proof, alpha) -> (is_valid, beta)
Verifier = Callable[[bytes, bytes, bytes], tuple[bool, bytes | None]]

OUTPUT_RAW_RESPONSE = "raw_response"
OUTPUT_HASH_BETA = "hash_beta"


def majority(reports: list[str], external_id: int = 0) -> str:
    """Return the report submitted by a strict majority of validators.

    :param reports: Raw validator reports.
    :param external_id: Request channel, for error reporting.
    :returns: The majority report.
    :raises NoMajorityError: If no report has more than half of the votes.
    """
    if reports:
        value, count = Counter(reports).most_common(1)[0]
        if count * 2 > len(reports):
            return value
    raise NoMajorityError(external_id, len(reports))


class VRFGate:
    """Checks and verifies VRF responses.

    :ivar response_length: Expected response length in hex characters.
    :ivar proof_length: Length of the proof prefix in hex characters.
    :ivar output_policy: ``"raw_response"`` returns the decoded response,
        ``"hash_beta"`` returns SHA3-256 of the decoded beta.
    :ivar verifier: VRF verification primitive.
    """

    def __init__(
        self,
        response_length: int = 288,
        proof_length: int = 160,
        output_policy: str = OUTPUT_HASH_BETA,
        verifier: Verifier | None = None,
    ) -> None:
        """Initialize the gate.

        :param response_length: Expected response length in hex characters.
        :param proof_length: Length of the proof prefix in hex characters.
        :param output_policy: How the released output is derived.
        :param verifier: Optional replacement for the built-in ECVRF verifier,
            e.g. a host-provided primitive.
        :raises ValueError: If parameters are inconsistent.
        """
        if not 0 < proof_length < response_length:
            raise ValueError("proof_length must be positive and shorter than response_length")
        if output_policy not in (OUTPUT_RAW_RESPONSE, OUTPUT_HASH_BETA):
            raise ValueError(f"Unknown output policy {output_policy!r}")

        self.response_length = response_length
        self.proof_length = proof_length
        self.output_policy = output_policy
        self.verifier: Verifier = verifier or ecvrf.verify

    def split_response(self, response: str) -> tuple[bytes, bytes]:
        """Check the response length and decode proof and beta.

        :param response: Hex response string.
        :returns: Tuple of (proof, beta) bytes.
        :raises MalformedResponseError: On wrong length or invalid hex.
        """
        if len(response) != self.response_length:
            raise MalformedResponseError(
                f"Expected {self.response_length} hex characters, got {len(response)}",
                expected_length=self.response_length,
                actual_length=len(response),
            )
        if response.strip(string.hexdigits):
            raise MalformedResponseError("Response is not a hex string")
        return bytes.fromhex(response[: self.proof_length]), bytes.fromhex(response[self.proof_length :])

    def verify_and_extract(self, public_key: bytes, response: str, alpha: bytes) -> bytes:
        """Verify a provider response and derive the released output.

        :param public_key: Selected provider's public key.
        :param response: Hex response string (proof followed by beta).
        :param alpha: Message the provider signed.
        :returns: The verified output bytes.
        :raises MalformedResponseError: If the response has the wrong shape.
        :raises ProofRejectedError: If the proof does not verify.
        :raises VRFVerificationError: If the verifier fails on its inputs.
        """
        proof, beta = self.split_response(response)

        valid, verified_beta = self.verifier(public_key, proof, alpha)
        if not valid:
            logger.warning("VRF proof rejected for public key %s", public_key.hex())
            raise ProofRejectedError(f"VRF proof rejected for alpha {alpha!r}")
        if verified_beta is not None and verified_beta != beta:
            logger.warning("VRF output does not match proof for public key %s", public_key.hex())
            raise ProofRejectedError("VRF output does not match the verified proof")

        logger.debug("VRF proof accepted for public key %s", public_key.hex())
        if self.output_policy == OUTPUT_RAW_RESPONSE:
            return bytes.fromhex(response)
        return hashlib.sha3_256(beta).digest()
