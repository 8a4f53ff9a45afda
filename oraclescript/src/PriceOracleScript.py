"""PriceOracleScript: Prepare and execute phases of the price oracle scripts.

Architecture:
    - prepare(): validate the request, route symbols to exchanges and plan
      one data source request per exchange
    - (the host fetches every request; validators report raw strings)
    - execute(): re-derive the same routing and reconcile the reports,
      keyed by external id, into one rate per requested symbol

Both phases are pure functions of the request and the deployment tables,
so every validator derives the same routing and the same result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .DeploymentConfig import PairDeployment, PriceDeployment, SingleSourceDeployment
from .errors import InvalidRequestError, UnknownSymbolError
from .median import median, median_of_three
from .RequestPlanner import ProviderRequest, RequestPlanner
from .ResponseReconciler import (
    ReconciliationResult,
    ResponseReconciler,
    SingleSourceAggregator,
    check_multiplier,
    parse_float,
    to_rate,
)
from .SymbolRouter import SymbolRouter

logger = logging.getLogger(__name__)

Reports = dict[int, list[str]]


@dataclass
class PriceResult:
    """Final output of a price request.

    :ivar rates: One rate per requested symbol, in request order.
    :ivar reconciliation: Intermediate per-provider data, if available.
    """

    rates: list[int]
    reconciliation: ReconciliationResult | None = None


class PriceOracleScript:
    """Multi-exchange price oracle script.

    :ivar deployment: Price deployment tables.
    :ivar router: Symbol to exchange router.
    :ivar planner: Request payload planner.
    :ivar reconciler: Two-level median reconciler.
    """

    def __init__(self, deployment: PriceDeployment) -> None:
        """Initialize the oracle script.

        :param deployment: Price deployment tables.
        """
        self.deployment = deployment
        self.router = SymbolRouter(deployment)
        self.planner = RequestPlanner(deployment)
        self.reconciler = ResponseReconciler()

    def prepare(self, symbols: list[str], multiplier: int = 1) -> list[ProviderRequest]:
        """Plan the data source requests for a price request.

        :param symbols: Requested symbols.
        :param multiplier: Rate multiplier (validated only).
        :returns: One ProviderRequest per exchange, by ascending index.
        :raises InvalidRequestError: If the request shape is invalid.
        :raises UnknownSymbolError: If a symbol is not supported.
        """
        check_multiplier(multiplier)
        requests = self.planner.plan(self.router.route(symbols))
        logger.info(
            f"{self.deployment.name}: {len(symbols)} symbols -> {len(requests)} data source requests"
        )
        return requests

    def execute(self, symbols: list[str], multiplier: int, reports: Reports) -> PriceResult:
        """Reconcile validator reports into one rate per requested symbol.

        :param symbols: Requested symbols, same order as in prepare().
        :param multiplier: Rate multiplier.
        :param reports: External id to raw validator reports. Missing ids are
            treated as providers nobody answered for.
        :returns: PriceResult with rates in request order.
        :raises InvalidRequestError: If the request shape is invalid.
        :raises UnknownSymbolError: If a symbol is not supported.
        :raises NoDataForSymbolError: If a symbol received no data at all.
        """
        check_multiplier(multiplier)
        groups = self.router.route(symbols)
        raw_responses = {provider: reports.get(provider.index, []) for provider in groups}

        reconciliation = self.reconciler.reconcile(groups, raw_responses, multiplier)
        rates = reconciliation.rates_for(symbols)
        logger.info(f"{self.deployment.name}: rates={dict(zip(symbols, rates))}")
        return PriceResult(rates=rates, reconciliation=reconciliation)


class SingleSourceOracleScript:
    """Price oracle script backed by a single data source.

    :ivar deployment: Single source deployment tables.
    :ivar aggregator: Upper-median integer aggregator.
    """

    def __init__(self, deployment: SingleSourceDeployment) -> None:
        """Initialize the oracle script.

        :param deployment: Single source deployment tables.
        """
        self.deployment = deployment
        self.aggregator = SingleSourceAggregator()

    def _validate(self, symbols: list[str]) -> None:
        if not symbols:
            raise InvalidRequestError("At least one symbol must be requested")
        for symbol in symbols:
            if symbol not in self.deployment.symbols:
                raise UnknownSymbolError(symbol)

    def prepare(self, symbols: list[str], multiplier: int = 1) -> list[ProviderRequest]:
        """Plan the single data source request.

        :param symbols: Requested symbols.
        :param multiplier: Unused; accepted for interface parity.
        :returns: A single ProviderRequest.
        :raises InvalidRequestError: If no symbols are requested.
        :raises UnknownSymbolError: If a symbol is not supported.
        """
        self._validate(symbols)
        return [
            ProviderRequest(
                external_id=self.deployment.external_id,
                data_source_id=self.deployment.data_source_id,
                calldata=" ".join(symbols).encode(),
            )
        ]

    def execute(self, symbols: list[str], multiplier: int, reports: Reports) -> PriceResult:
        """Aggregate the data source's validator reports.

        :param symbols: Requested symbols.
        :param multiplier: Unused; reports are already scaled integers.
        :param reports: External id to raw validator reports.
        :returns: PriceResult with one value per symbol.
        :raises NoDataForSymbolError: If no report covers every symbol.
        """
        self._validate(symbols)
        rates = self.aggregator.aggregate(symbols, reports.get(self.deployment.external_id, []))
        logger.info(f"{self.deployment.name}: rates={dict(zip(symbols, rates))}")
        return PriceResult(rates=rates)


class PairOracleScript:
    """Price oracle script for one base/quote pair quoted by three sources.

    Each source's validator reports are reduced to their median, and the
    rate is the median of the three source medians. A source nobody
    answered for contributes 0.

    :ivar deployment: Pair deployment with exactly three data sources.
    """

    def __init__(self, deployment: PairDeployment) -> None:
        """Initialize the oracle script.

        :param deployment: Pair deployment tables.
        """
        self.deployment = deployment

    @staticmethod
    def _pair(symbols: list[str]) -> tuple[str, str]:
        if len(symbols) != 2:
            raise InvalidRequestError(
                f"Pair requests take exactly two symbols (base, quote), got {len(symbols)}"
            )
        return symbols[0], symbols[1]

    def prepare(self, symbols: list[str], multiplier: int = 1) -> list[ProviderRequest]:
        """Plan one request per data source.

        :param symbols: ``[base, quote]``.
        :param multiplier: Rate multiplier, forwarded to the data sources.
        :returns: Three ProviderRequests with identical calldata.
        :raises InvalidRequestError: If the request is not a single pair.
        """
        check_multiplier(multiplier)
        base, quote = self._pair(symbols)
        calldata = f"{quote} {base} {multiplier}".encode()
        return [
            ProviderRequest(
                external_id=provider.data_source_id,
                data_source_id=provider.data_source_id,
                calldata=calldata,
            )
            for provider in self.deployment.providers
        ]

    def source_median(self, reports: list[str]) -> float:
        """Median of one source's validator reports.

        :param reports: Raw validator reports, one price each.
        :returns: The median, or 0.0 if no report parses.
        :raises NonComparableValueError: If a report is NaN.
        """
        values = []
        for raw in reports:
            value = parse_float(raw)
            if value is None:
                logger.debug("Dropping unparsable report %r", raw)
                continue
            values.append(value)
        return median(values)

    def execute(self, symbols: list[str], multiplier: int, reports: Reports) -> PriceResult:
        """Reduce the three sources' reports into one rate.

        :param symbols: ``[base, quote]``.
        :param multiplier: Rate multiplier.
        :param reports: External id (data source id) to raw validator reports.
        :returns: PriceResult holding a single rate.
        :raises InvalidRequestError: If the request is not a single pair.
        :raises NonComparableValueError: If a report is NaN.
        """
        check_multiplier(multiplier)
        base, quote = self._pair(symbols)
        medians = [
            self.source_median(reports.get(provider.data_source_id, []))
            for provider in self.deployment.providers
        ]
        rate = to_rate(median_of_three(*medians), multiplier)
        logger.info(f"{self.deployment.name}: {base}/{quote} medians={medians} rate={rate}")
        return PriceResult(rates=[rate])
