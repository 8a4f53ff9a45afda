"""SymbolRouter: Group requested symbols by the providers that serve them.

Routing is a pure function of the deployment's capability table: every
requested symbol is appended, in request order, to the group of every
provider whose bit is set in the symbol's mask.

.. code-block:: python

    >>> router = SymbolRouter(load_deployment("terra_dexes_testnet"))
    >>> groups = router.route(["ANC", "ABR"])
    >>> {p.name: symbols for p, symbols in groups.items()}
    {'TERRASWAP': ['ANC', 'ABR'], 'ASTROPORT': ['ANC']}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import InvalidRequestError, UnknownSymbolError

if TYPE_CHECKING:
    from .DeploymentConfig import PriceDeployment, Provider

logger = logging.getLogger(__name__)


class SymbolRouter:
    """Maps requested symbols onto provider request groups.

    :ivar deployment: Price deployment holding providers and capabilities.
    """

    def __init__(self, deployment: PriceDeployment) -> None:
        """Initialize the router.

        :param deployment: Price deployment to route against.
        """
        self.deployment = deployment

    def validate(self, symbols: list[str]) -> None:
        """Check that a request can be routed without building groups.

        :param symbols: Requested symbols.
        :raises InvalidRequestError: If no symbols are requested.
        :raises UnknownSymbolError: If any symbol is not in the capability table
            or no provider serves it.
        """
        if not symbols:
            raise InvalidRequestError("At least one symbol must be requested")
        for symbol in symbols:
            if not self.deployment.capabilities.mask(symbol):
                raise UnknownSymbolError(symbol)

    def route(self, symbols: list[str]) -> dict[Provider, list[str]]:
        """Group symbols by provider.

        Groups are keyed by Provider and ordered by ascending provider index;
        within a group, symbols keep their first-seen request order.

        :param symbols: Requested symbols.
        :returns: Dict mapping Provider to its ordered symbol list.
        :raises InvalidRequestError: If no symbols are requested.
        :raises UnknownSymbolError: If any symbol is not in the capability table.
        """
        self.validate(symbols)

        by_index: dict[int, list[str]] = {}
        for symbol in symbols:
            for index in self.deployment.capabilities.providers_for(symbol):
                group = by_index.setdefault(index, [])
                if symbol not in group:
                    group.append(symbol)

        groups = {
            self.deployment.provider(index): by_index[index]
            for index in sorted(by_index)
        }
        logger.debug(
            "Routed %d symbols to %d providers: %s",
            len(symbols),
            len(groups),
            {p.name: len(s) for p, s in groups.items()},
        )
        return groups
