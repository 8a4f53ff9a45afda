"""RequestPlanner: Build per-provider request payloads.

Native providers receive a bare space-separated symbol list and are
queried through their own data source. Providers multiplexed through the
shared aggregator back end receive the same list prefixed with their
lowercase name, and are all queried through the aggregator data source.

.. code-block:: python

    >>> planner = RequestPlanner(deployment)
    >>> planner.build_calldata(binance, ["BTC", "ETH"])
    b'binance BTC ETH'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import DeploymentConfigError

if TYPE_CHECKING:
    from .DeploymentConfig import PriceDeployment, Provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderRequest:
    """An outgoing request for one provider.

    :ivar external_id: Request channel; responses come back under this id.
    :ivar data_source_id: Upstream data source to query.
    :ivar calldata: Opaque request payload.
    """

    external_id: int
    data_source_id: int
    calldata: bytes

    def to_dict(self) -> dict[str, int | str]:
        """Return a JSON-friendly representation."""
        return {
            "external_id": self.external_id,
            "data_source_id": self.data_source_id,
            "calldata": self.calldata.decode(),
        }


class RequestPlanner:
    """Resolves data sources and payloads for routed provider groups.

    :ivar deployment: Price deployment holding providers and data source ids.
    """

    def __init__(self, deployment: PriceDeployment) -> None:
        """Initialize the planner.

        :param deployment: Price deployment to plan against.
        """
        self.deployment = deployment

    def resolve_data_source(self, provider_id: int) -> int:
        """Resolve the upstream data source id for a provider ordinal.

        :param provider_id: Provider ordinal.
        :returns: The provider's own data source id if native, otherwise the
            shared aggregator data source id.
        :raises UnsupportedProviderError: If the ordinal is unknown.
        """
        provider = self.deployment.provider(provider_id)
        if provider.native:
            return provider.data_source_id
        if self.deployment.aggregator_data_source_id is None:
            raise DeploymentConfigError(
                f"{self.deployment.name}: no aggregator data source for {provider.name}"
            )
        return self.deployment.aggregator_data_source_id

    @staticmethod
    def build_calldata(provider: Provider, symbols: list[str]) -> bytes:
        """Build the payload sent to a provider.

        :param provider: Target provider.
        :param symbols: Symbols requested from it, in request order.
        :returns: Space-joined token list, name-prefixed for aggregator-routed
            providers.
        """
        tokens = list(symbols)
        if not provider.native:
            tokens.insert(0, provider.name.lower())
        return " ".join(tokens).encode()

    def plan(self, groups: dict[Provider, list[str]]) -> list[ProviderRequest]:
        """Build one request per provider group.

        :param groups: Output of SymbolRouter.route().
        :returns: Requests ordered by ascending provider index.
        :raises UnsupportedProviderError: If a group names an unknown provider.
        """
        requests = []
        for provider in sorted(groups, key=lambda p: p.index):
            request = ProviderRequest(
                external_id=provider.index,
                data_source_id=self.resolve_data_source(provider.index),
                calldata=self.build_calldata(provider, groups[provider]),
            )
            logger.debug(
                "[%s] external_id=%d data_source_id=%d calldata=%r",
                provider.name.lower(),
                request.external_id,
                request.data_source_id,
                request.calldata,
            )
            requests.append(request)
        return requests
