"""ResponseReconciler: Median-of-medians over validator reports.

Algorithm, per queried provider:
    1. No validator answered -> provider is absent for all of its symbols
    2. Split every validator report on "," and parse floats, dropping
       unparsable tokens; values align to the provider's symbol order
    3. Per symbol position, median across validators (0 if nobody supplied
       a value at that position)

Then, per requested symbol:
    4. Median across every non-absent provider queried for the symbol;
       fail with NoDataForSymbolError if there is none
    5. Scale by the multiplier and truncate to an unsigned 64-bit rate

.. code-block:: python

    >>> reconciler = ResponseReconciler()
    >>> result = reconciler.reconcile(
    ...     {kraken: ["BTC", "ETH"], okx: ["BTC"]},
    ...     {kraken: ["100,200", "102,198"], okx: []},
    ...     multiplier=100,
    ... )
    >>> result.rates
    {'BTC': 10100, 'ETH': 19900}
    >>> result.absent_providers
    ['OKX']
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .errors import InvalidRequestError, NoDataForSymbolError
from .median import median, upper_median

if TYPE_CHECKING:
    from .DeploymentConfig import Provider

logger = logging.getLogger(__name__)

U64_MAX = 2**64 - 1

# Token grammars accepted by the validators' number parsers: no surrounding
# whitespace, no digit separators.
FLOAT_TOKEN = re.compile(
    r"[+-]?(?:inf|infinity|nan|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:e[+-]?[0-9]+)?)",
    re.IGNORECASE,
)
U64_TOKEN = re.compile(r"\+?[0-9]+")


def parse_float(token: str) -> float | None:
    """Parse a single price token.

    :param token: Raw token.
    :returns: The value, or None if the token is not a plain decimal,
        ``inf`` or ``nan`` literal.
    """
    if not FLOAT_TOKEN.fullmatch(token):
        return None
    return float(token)


def check_multiplier(multiplier: int) -> None:
    """Reject multipliers outside the unsigned 64-bit range.

    :raises InvalidRequestError: If multiplier is negative or above U64_MAX.
    """
    if not 0 <= multiplier <= U64_MAX:
        raise InvalidRequestError(f"multiplier must be between 0 and {U64_MAX}, got {multiplier}")


def to_rate(value: float, multiplier: int) -> int:
    """Scale a price and truncate it to an unsigned 64-bit integer.

    Out-of-range results saturate at the u64 bounds and NaN maps to 0, like
    a saturating float to u64 cast.

    :param value: Aggregated price.
    :param multiplier: Caller-supplied integer multiplier.
    :returns: Truncated rate.
    :raises InvalidRequestError: If multiplier is outside the u64 range.
    """
    check_multiplier(multiplier)
    scaled = value * float(multiplier)
    if math.isnan(scaled) or scaled <= 0:
        return 0
    if scaled >= U64_MAX:
        return U64_MAX
    return int(scaled)


def parse_report(raw: str, delimiter: str = ",") -> list[float]:
    """Parse one validator report into a list of prices.

    Tokens that do not parse as floats (including ones with surrounding
    whitespace or ``_`` separators) are dropped, so later values shift left
    into their positions.

    :param raw: Raw validator report (e.g., "100.5,2001.25").
    :param delimiter: Token delimiter.
    :returns: Parsed values in report order.
    """
    values: list[float] = []
    for token in raw.split(delimiter):
        value = parse_float(token)
        if value is None:
            logger.debug("Dropping unparsable token %r", token)
            continue
        values.append(value)
    return values


@dataclass
class ReconciliationResult:
    """Result of a two-level reconciliation.

    :ivar rates: Symbol to scaled rate, in request order.
    :ivar provider_medians: Provider name to its per-symbol medians.
    :ivar absent_providers: Names of queried providers that returned nothing.
    """

    rates: dict[str, int]
    provider_medians: dict[str, dict[str, float]] = field(default_factory=dict)
    absent_providers: list[str] = field(default_factory=list)

    def rates_for(self, symbols: list[str]) -> list[int]:
        """Get rates aligned with a request's symbol order.

        :param symbols: Requested symbols (duplicates allowed).
        :returns: One rate per requested symbol.
        """
        return [self.rates[s] for s in symbols]


class ResponseReconciler:
    """Reconciles per-validator, per-provider reports into one rate per symbol.

    :cvar DELIMITER: Separator between values in a validator report.
    """

    DELIMITER = ","

    def provider_medians(self, symbols: list[str], reports: list[str]) -> list[float] | None:
        """Compute one provider's per-symbol medians across its validators.

        :param symbols: Symbols requested from the provider, in request order.
        :param reports: Raw validator reports for the provider.
        :returns: One median per symbol, or None if no validator answered.
        """
        if not reports:
            return None

        columns: list[list[float]] = [[] for _ in symbols]
        for raw in reports:
            values = parse_report(raw, self.DELIMITER)
            if len(values) > len(symbols):
                logger.debug(
                    "Ignoring %d surplus values in report %r",
                    len(values) - len(symbols),
                    raw,
                )
            for column, value in zip(columns, values):
                column.append(value)

        return [median(column) for column in columns]

    def reconcile(
        self,
        provider_groups: dict[Provider, list[str]],
        raw_responses: dict[Provider, list[str]],
        multiplier: int,
    ) -> ReconciliationResult:
        """Reconcile raw reports into one rate per requested symbol.

        :param provider_groups: Provider to the symbols requested from it.
        :param raw_responses: Provider to its raw validator reports. A
            provider missing from this dict is treated as silent.
        :param multiplier: Integer multiplier applied to the final median.
        :returns: ReconciliationResult with rates and per-provider medians.
        :raises InvalidRequestError: If multiplier is outside the u64 range.
        :raises NoDataForSymbolError: If every provider for a symbol was silent.
        :raises NonComparableValueError: If a report contains NaN.
        """
        check_multiplier(multiplier)

        result = ReconciliationResult(rates={})
        symbol_prices: dict[str, list[float]] = {}
        requested: list[str] = []

        for provider, symbols in provider_groups.items():
            for symbol in symbols:
                if symbol not in symbol_prices:
                    symbol_prices[symbol] = []
                    requested.append(symbol)

            medians = self.provider_medians(symbols, raw_responses.get(provider, []))
            if medians is None:
                logger.warning(f"[{provider.name.lower()}] No validator reports, excluding provider")
                result.absent_providers.append(provider.name)
                continue

            result.provider_medians[provider.name] = dict(zip(symbols, medians))
            for symbol, value in zip(symbols, medians):
                symbol_prices[symbol].append(value)

        for symbol in requested:
            prices = symbol_prices[symbol]
            if not prices:
                raise NoDataForSymbolError(symbol)
            result.rates[symbol] = to_rate(median(prices), multiplier)

        logger.debug(
            "Reconciled %d symbols from %d providers (%d absent)",
            len(result.rates),
            len(provider_groups),
            len(result.absent_providers),
        )
        return result


class SingleSourceAggregator:
    """Aggregates integer reports from a single data source.

    Unparsable tokens are dropped, and a report is used only if exactly one
    unsigned integer per requested symbol remains. Per position the upper
    median is taken.

    .. code-block:: python

        >>> SingleSourceAggregator().aggregate(
        ...     ["A", "B", "C"], ["12 45 78", "32 67 89", "54 23 91"]
        ... )
        [32, 45, 89]
    """

    @staticmethod
    def parse_report(raw: str) -> list[int]:
        """Parse a whitespace-separated list of unsigned integers.

        Tokens that are not u64 literals are dropped.

        :param raw: Raw validator report.
        :returns: Parsed integers in report order.
        """
        values = []
        for token in raw.split():
            if not U64_TOKEN.fullmatch(token) or int(token) > U64_MAX:
                logger.debug("Dropping unparsable token %r", token)
                continue
            values.append(int(token))
        return values

    def aggregate(self, symbols: list[str], reports: list[str]) -> list[int]:
        """Aggregate validator reports into one value per symbol.

        :param symbols: Requested symbols.
        :param reports: Raw validator reports.
        :returns: Upper median per symbol, in request order.
        :raises NoDataForSymbolError: If no report covers every symbol.
        """
        columns: list[list[int]] = [[] for _ in symbols]
        accepted = 0
        for raw in reports:
            values = self.parse_report(raw)
            if len(values) != len(symbols):
                logger.debug("Discarding report %r", raw)
                continue
            accepted += 1
            for column, value in zip(columns, values):
                column.append(value)

        if not accepted or not symbols:
            raise NoDataForSymbolError(symbols[0] if symbols else "")

        return [upper_median(column) for column in columns]
