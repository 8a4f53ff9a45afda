"""DeploymentConfig: Static per-deployment provider and symbol tables.

Each deployment is a JSON document stored in the ``deployments`` folder next
to this module. Four kinds exist:

- ``price``: ordered exchanges plus a capability string per symbol, where
  character ``i`` is ``"1"`` iff exchange ``i`` can serve the symbol.
- ``single_source``: one data source answering for a fixed symbol set.
- ``pair``: exactly three data sources quoting a single base/quote pair.
- ``randomness``: ordered VRF providers with their public keys, plus the
  message conventions the providers sign over.

.. code-block:: python

    >>> deployment = load_deployment("crypto_prices")
    >>> deployment.provider(1).name
    'BINANCE'
    >>> deployment.capabilities.providers_for("BTC")[:3]
    [1, 2, 3]
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from .errors import DeploymentConfigError, UnknownSymbolError, UnsupportedProviderError

logger = logging.getLogger(__name__)

DEPLOYMENTS_DIR = Path(__file__).parent / "deployments"

SEED_ENCODINGS = ("text", "hex32")
OUTPUT_POLICIES = ("raw_response", "hash_beta")


@dataclass(frozen=True)
class Provider:
    """A single exchange or randomness source.

    :ivar index: Ordinal position, used as bit position and external id.
    :ivar name: Upper-case provider name (e.g., "BINANCE", "VRF1").
    :ivar native: True if queried directly, False if routed through the
        shared aggregator back end.
    :ivar data_source_id: Upstream data source id (None for non-native).
    :ivar public_key: 32-byte VRF public key (randomness providers only).
    """

    index: int
    name: str
    native: bool = True
    data_source_id: int | None = None
    public_key: bytes | None = None


@dataclass(frozen=True)
class CapabilityTable:
    """Immutable mapping from symbol to the bitmask of providers serving it.

    :ivar masks: Symbol to bitmask (bit ``i`` set iff provider ``i`` serves it).
    :ivar provider_count: Number of providers the masks range over.
    """

    masks: dict[str, int]
    provider_count: int

    @classmethod
    def from_strings(cls, table: dict[str, str], provider_count: int) -> CapabilityTable:
        """Build a table from capability strings.

        :param table: Symbol to capability string (``"0110..."``).
        :param provider_count: Expected string length.
        :returns: New CapabilityTable.
        :raises DeploymentConfigError: On malformed capability strings.
        """
        masks: dict[str, int] = {}
        for symbol, bits in table.items():
            if len(bits) != provider_count or set(bits) - {"0", "1"}:
                raise DeploymentConfigError(
                    f"Capability string for {symbol} must be {provider_count} "
                    f"characters of 0/1, got {bits!r}"
                )
            masks[symbol] = sum(1 << i for i, bit in enumerate(bits) if bit == "1")
        return cls(masks=masks, provider_count=provider_count)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self.masks

    def mask(self, symbol: str) -> int:
        """Get the provider bitmask for a symbol.

        :param symbol: Symbol to look up.
        :returns: Bitmask over provider ordinals.
        :raises UnknownSymbolError: If the symbol is not in the table.
        """
        try:
            return self.masks[symbol]
        except KeyError:
            raise UnknownSymbolError(symbol) from None

    def providers_for(self, symbol: str) -> list[int]:
        """Get provider ordinals serving a symbol, ascending.

        :param symbol: Symbol to look up.
        :returns: List of provider indices.
        :raises UnknownSymbolError: If the symbol is not in the table.
        """
        mask = self.mask(symbol)
        return [i for i in range(self.provider_count) if mask >> i & 1]


@dataclass(frozen=True)
class _ProviderTable:
    providers: tuple[Provider, ...]

    def provider(self, index: int) -> Provider:
        """Look up a provider by ordinal.

        :param index: Provider ordinal.
        :returns: The Provider.
        :raises UnsupportedProviderError: If the ordinal is out of range.
        """
        if not 0 <= index < len(self.providers):
            raise UnsupportedProviderError(index)
        return self.providers[index]


@dataclass(frozen=True)
class PriceDeployment(_ProviderTable):
    """Multi-exchange price deployment.

    :ivar name: Deployment name.
    :ivar capabilities: Symbol capability table.
    :ivar aggregator_data_source_id: Data source shared by non-native providers.
    """

    name: str
    capabilities: CapabilityTable
    aggregator_data_source_id: int | None = None


@dataclass(frozen=True)
class SingleSourceDeployment:
    """Single data source price deployment.

    :ivar name: Deployment name.
    :ivar external_id: Request channel used for the data source.
    :ivar data_source_id: Upstream data source id.
    :ivar symbols: Supported symbols.
    """

    name: str
    external_id: int
    data_source_id: int
    symbols: frozenset[str]


@dataclass(frozen=True)
class PairDeployment(_ProviderTable):
    """Three data sources each quoting one base/quote pair.

    Every provider is queried through its own data source, which also serves
    as its external id.

    :ivar name: Deployment name.
    """

    name: str


@dataclass(frozen=True)
class RandomnessDeployment(_ProviderTable):
    """VRF randomness deployment.

    :ivar name: Deployment name.
    :ivar external_id: Request channel used for the selected provider.
    :ivar response_length: Expected response length in hex characters.
    :ivar proof_length: Length of the proof prefix in hex characters.
    :ivar seed_encoding: ``"text"`` or ``"hex32"``.
    :ivar selection_format: Template for the provider selection message.
    :ivar alpha_format: Template for the VRF alpha message.
    :ivar output_policy: ``"raw_response"`` or ``"hash_beta"``.
    """

    name: str
    external_id: int = 1
    response_length: int = 288
    proof_length: int = 160
    seed_encoding: str = "text"
    selection_format: str = "{seed} {time}"
    alpha_format: str = "{seed} {time}"
    output_policy: str = "hash_beta"


Deployment = Union[PriceDeployment, SingleSourceDeployment, PairDeployment, RandomnessDeployment]


def _require(data: dict[str, Any], key: str, source: str) -> Any:
    if key not in data:
        raise DeploymentConfigError(f"{source}: missing field '{key}'")
    return data[key]


def _parse_providers(raw: list[dict[str, Any]], source: str, with_keys: bool) -> tuple[Provider, ...]:
    providers = []
    seen: set[str] = set()
    for index, item in enumerate(raw):
        name = str(_require(item, "name", source)).upper()
        if name in seen:
            raise DeploymentConfigError(f"{source}: duplicate provider {name}")
        seen.add(name)

        native = bool(item.get("native", True))
        data_source_id = item.get("data_source_id")
        if native and data_source_id is None:
            raise DeploymentConfigError(f"{source}: native provider {name} has no data_source_id")

        public_key = None
        if with_keys:
            try:
                public_key = bytes.fromhex(_require(item, "public_key", source))
            except ValueError as e:
                raise DeploymentConfigError(f"{source}: invalid public key for {name}") from e
            if len(public_key) != 32:
                raise DeploymentConfigError(f"{source}: public key for {name} must be 32 bytes")

        providers.append(
            Provider(
                index=index,
                name=name,
                native=native,
                data_source_id=data_source_id,
                public_key=public_key,
            )
        )
    if not providers:
        raise DeploymentConfigError(f"{source}: at least one provider is required")
    return tuple(providers)


def parse_deployment(data: dict[str, Any], source: str = "<memory>") -> Deployment:
    """Build a deployment from its decoded JSON document.

    :param data: Decoded deployment document.
    :param source: Label used in error messages.
    :returns: The matching deployment dataclass.
    :raises DeploymentConfigError: If the document is inconsistent.
    """
    kind = _require(data, "kind", source)
    name = data.get("name", source)

    if kind == "price":
        providers = _parse_providers(_require(data, "providers", source), source, with_keys=False)
        aggregator_id = data.get("aggregator_data_source_id")
        if aggregator_id is None and any(not p.native for p in providers):
            raise DeploymentConfigError(
                f"{source}: aggregator_data_source_id is required for non-native providers"
            )
        capabilities = CapabilityTable.from_strings(
            _require(data, "symbols", source), len(providers)
        )
        return PriceDeployment(
            providers=providers,
            name=name,
            capabilities=capabilities,
            aggregator_data_source_id=aggregator_id,
        )

    if kind == "single_source":
        return SingleSourceDeployment(
            name=name,
            external_id=int(data.get("external_id", 1)),
            data_source_id=int(_require(data, "data_source_id", source)),
            symbols=frozenset(_require(data, "symbols", source)),
        )

    if kind == "pair":
        providers = _parse_providers(_require(data, "providers", source), source, with_keys=False)
        if len(providers) != 3:
            raise DeploymentConfigError(f"{source}: pair deployments need exactly 3 providers")
        if any(not p.native for p in providers):
            raise DeploymentConfigError(f"{source}: pair providers must be native")
        return PairDeployment(providers=providers, name=name)

    if kind == "randomness":
        providers = _parse_providers(_require(data, "providers", source), source, with_keys=True)
        response_length = int(_require(data, "response_length", source))
        proof_length = int(_require(data, "proof_length", source))
        if response_length % 2 or proof_length % 2 or not 0 < proof_length < response_length:
            raise DeploymentConfigError(
                f"{source}: proof_length must be even and shorter than response_length"
            )
        seed_encoding = data.get("seed_encoding", "text")
        if seed_encoding not in SEED_ENCODINGS:
            raise DeploymentConfigError(f"{source}: unknown seed_encoding {seed_encoding!r}")
        output_policy = data.get("output_policy", "hash_beta")
        if output_policy not in OUTPUT_POLICIES:
            raise DeploymentConfigError(f"{source}: unknown output_policy {output_policy!r}")
        return RandomnessDeployment(
            providers=providers,
            name=name,
            external_id=int(data.get("external_id", 1)),
            response_length=response_length,
            proof_length=proof_length,
            seed_encoding=seed_encoding,
            selection_format=_require(data, "selection_format", source),
            alpha_format=_require(data, "alpha_format", source),
            output_policy=output_policy,
        )

    raise DeploymentConfigError(f"{source}: unknown deployment kind {kind!r}")


def available_deployments() -> list[str]:
    """Get names of the bundled deployments.

    :returns: Sorted list of deployment names.
    """
    return sorted(path.stem for path in DEPLOYMENTS_DIR.glob("*.json"))


def load_deployment(name_or_path: str | Path) -> Deployment:
    """Load a bundled deployment by name, or a deployment file by path.

    :param name_or_path: Bundled deployment name (e.g., "crypto_prices") or
        path to a JSON file.
    :returns: The parsed deployment.
    :raises DeploymentConfigError: If the deployment cannot be found or parsed.
    """
    path = Path(name_or_path)
    if not path.suffix:
        path = DEPLOYMENTS_DIR / f"{name_or_path}.json"
    if not path.is_file():
        available = ", ".join(available_deployments())
        raise DeploymentConfigError(
            f"Unknown deployment '{name_or_path}'. Available: {available}"
        )

    with open(path, "r") as file:
        try:
            data = json.load(file)
        except json.JSONDecodeError as e:
            raise DeploymentConfigError(f"{path}: invalid JSON: {e}") from e

    deployment = parse_deployment(data, source=str(path.name))
    logger.debug("Loaded deployment %s from %s", deployment.name, path)
    return deployment
