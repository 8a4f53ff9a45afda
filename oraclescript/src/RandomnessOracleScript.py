"""RandomnessOracleScript: Prepare and execute phases of the VRF oracle script.

prepare() renders the selection message from the seed and timestamp, picks
one VRF provider with DeterministicSelector and asks it for a proof over
that message. execute() takes the majority validator report, verifies the
proof against the selected provider's public key over the alpha message and
releases the output.

The selection and alpha templates come from the deployment and must match
the providers' signing convention byte for byte.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .DeploymentConfig import Provider, RandomnessDeployment
from .DeterministicSelector import select_index
from .errors import InvalidRequestError
from .RequestPlanner import ProviderRequest
from .VRFGate import Verifier, VRFGate, majority

logger = logging.getLogger(__name__)

SEED_SIZE = 32


@dataclass(frozen=True)
class RandomnessRequest:
    """A validated randomness request.

    :ivar selection_message: Message used for provider selection and sent as
        calldata to the selected provider.
    :ivar alpha: Message the provider's VRF proof must verify over.
    :ivar provider: Selected provider.
    """

    selection_message: bytes
    alpha: bytes
    provider: Provider


class RandomnessOracleScript:
    """VRF-backed randomness oracle script.

    :ivar deployment: Randomness deployment tables.
    :ivar gate: VRF verification gate.
    """

    def __init__(self, deployment: RandomnessDeployment, verifier: Verifier | None = None) -> None:
        """Initialize the oracle script.

        :param deployment: Randomness deployment tables.
        :param verifier: Optional VRF verification primitive override.
        """
        self.deployment = deployment
        self.gate = VRFGate(
            response_length=deployment.response_length,
            proof_length=deployment.proof_length,
            output_policy=deployment.output_policy,
            verifier=verifier,
        )

    def _render_seed(self, seed: str | bytes) -> str:
        if self.deployment.seed_encoding == "hex32":
            if isinstance(seed, str):
                try:
                    seed = bytes.fromhex(seed.removeprefix("0x"))
                except ValueError as e:
                    raise InvalidRequestError(f"seed is not valid hex: {e}") from e
            if len(seed) != SEED_SIZE:
                raise InvalidRequestError(f"seed must be {SEED_SIZE} bytes, got {len(seed)}")
            return seed.hex()

        if isinstance(seed, bytes):
            try:
                seed = seed.decode()
            except UnicodeDecodeError as e:
                raise InvalidRequestError("text seed must be valid UTF-8") from e
        return seed

    def build_request(self, seed: str | bytes, time: int) -> RandomnessRequest:
        """Validate a request and derive its messages and provider.

        :param seed: Seed, text or 32 bytes depending on the deployment.
        :param time: Unix timestamp of the request.
        :returns: RandomnessRequest.
        :raises InvalidRequestError: If seed or time are invalid.
        """
        if time < 1:
            raise InvalidRequestError("time must be > 0")

        rendered = self._render_seed(seed)
        selection_message = self.deployment.selection_format.format(seed=rendered, time=time).encode()
        alpha = self.deployment.alpha_format.format(seed=rendered, time=time).encode()
        index = select_index(selection_message, len(self.deployment.providers))
        return RandomnessRequest(
            selection_message=selection_message,
            alpha=alpha,
            provider=self.deployment.provider(index),
        )

    def prepare(self, seed: str | bytes, time: int, worker_address: bytes = b"") -> ProviderRequest:
        """Plan the request to the selected VRF provider.

        :param seed: Seed, text or 32 bytes depending on the deployment.
        :param time: Unix timestamp of the request.
        :param worker_address: Opaque requester identifier; not part of any
            signed or selection message.
        :returns: ProviderRequest for the selected provider.
        :raises InvalidRequestError: If seed or time are invalid.
        """
        request = self.build_request(seed, time)
        logger.info(
            f"{self.deployment.name}: selected {request.provider.name} "
            f"(worker={worker_address.hex() or '-'})"
        )
        return ProviderRequest(
            external_id=self.deployment.external_id,
            data_source_id=request.provider.data_source_id,
            calldata=request.selection_message,
        )

    def execute(
        self,
        seed: str | bytes,
        time: int,
        reports: dict[int, list[str]],
        worker_address: bytes = b"",
    ) -> bytes:
        """Verify the majority report and release the random output.

        :param seed: Seed, same as in prepare().
        :param time: Unix timestamp, same as in prepare().
        :param reports: External id to raw validator reports.
        :param worker_address: Opaque requester identifier.
        :returns: Verified output bytes.
        :raises NoMajorityError: If validators do not agree on a response.
        :raises MalformedResponseError: If the response has the wrong shape.
        :raises ProofRejectedError: If the proof does not verify.
        :raises VRFVerificationError: If the verifier fails on its inputs.
        """
        request = self.build_request(seed, time)
        external_id = self.deployment.external_id
        response = majority(reports.get(external_id, []), external_id)

        output = self.gate.verify_and_extract(request.provider.public_key, response, request.alpha)
        logger.info(
            f"{self.deployment.name}: verified output from {request.provider.name} "
            f"(worker={worker_address.hex() or '-'})"
        )
        return output
