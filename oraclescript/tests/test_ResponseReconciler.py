"""Unit tests for ResponseReconciler and SingleSourceAggregator."""

import logging

import pytest

from oraclescript.src.DeploymentConfig import Provider
from oraclescript.src.errors import (
    InvalidRequestError,
    NoDataForSymbolError,
    NonComparableValueError,
)
from oraclescript.src.ResponseReconciler import (
    U64_MAX,
    ReconciliationResult,
    ResponseReconciler,
    SingleSourceAggregator,
    parse_float,
    parse_report,
    to_rate,
)

KRAKEN = Provider(index=0, name="KRAKEN", data_source_id=58)
OKX = Provider(index=1, name="OKX", data_source_id=56)
BINANCE = Provider(index=2, name="BINANCE", data_source_id=54)


class TestParseReport:
    """Test validator report parsing."""

    def test_comma_separated(self) -> None:
        """Values are split on commas."""
        assert parse_report("100.5,2001.25") == [100.5, 2001.25]

    def test_unparsable_tokens_dropped(self) -> None:
        """Bad tokens are dropped and later values shift left."""
        assert parse_report("abc,2.5,,3") == [2.5, 3.0]

    def test_strict_token_grammar(self) -> None:
        """Tokens with surrounding whitespace or digit separators are dropped."""
        assert parse_report("100, 200,1_000") == [100.0]
        assert parse_report(" 1.5 , 2 ") == []
        assert parse_report("1_000,0x10,1e3") == [1000.0]

    @pytest.mark.parametrize("token", ["1", "+1.5", "-2", "1.", ".5", "2E-3", "inf", "-Infinity", "NaN"])
    def test_number_forms(self, token: str) -> None:
        """Plain decimal, exponent and special literals are accepted."""
        assert parse_float(token) is not None

    @pytest.mark.parametrize("token", ["", ".", "e5", "1e", "+-1", "1__0", "١", "0x1f", "infinit"])
    def test_rejected_forms(self, token: str) -> None:
        """Anything else is not a price."""
        assert parse_float(token) is None

    def test_empty_string(self) -> None:
        """An empty report yields no values."""
        assert parse_report("") == []

    def test_custom_delimiter(self) -> None:
        """Delimiter is configurable."""
        assert parse_report("1 2 3", delimiter=" ") == [1.0, 2.0, 3.0]


class TestToRate:
    """Test scaling and truncation."""

    def test_truncates(self) -> None:
        """Fractions are truncated toward zero."""
        assert to_rate(1.999, 1) == 1
        assert to_rate(100.5, 100) == 10050

    def test_zero_multiplier(self) -> None:
        """A zero multiplier yields zero."""
        assert to_rate(123.0, 0) == 0

    def test_negative_clamps_to_zero(self) -> None:
        """Negative prices saturate at zero."""
        assert to_rate(-5.0, 10) == 0

    def test_saturates_at_u64_max(self) -> None:
        """Oversized values saturate at the u64 maximum."""
        assert to_rate(1e30, 10**9) == U64_MAX
        assert to_rate(float("inf"), 1) == U64_MAX

    def test_nan_is_zero(self) -> None:
        """NaN converts to 0 like a saturating cast."""
        assert to_rate(float("nan"), 1) == 0
        assert to_rate(float("inf"), 0) == 0

    def test_multiplier_range(self) -> None:
        """Multipliers must fit in an unsigned 64-bit integer."""
        assert to_rate(1.0, U64_MAX) == U64_MAX
        with pytest.raises(InvalidRequestError, match="multiplier"):
            to_rate(1.0, U64_MAX + 1)
        with pytest.raises(InvalidRequestError, match="multiplier"):
            to_rate(1.0, 10**400)
        with pytest.raises(InvalidRequestError, match="multiplier"):
            to_rate(1.0, -1)


class TestProviderMedians:
    """Test the per-provider level."""

    def test_no_reports(self) -> None:
        """No validator reports means the provider is absent."""
        assert ResponseReconciler().provider_medians(["BTC"], []) is None

    def test_per_position_median(self) -> None:
        """Each symbol position gets its own median."""
        medians = ResponseReconciler().provider_medians(
            ["A", "B", "C"], ["12,45,78", "32,67,89", "54,23,91"]
        )
        assert medians == [32.0, 45.0, 89.0]

    def test_short_report_yields_zero(self) -> None:
        """A position nobody supplied becomes 0, not absent."""
        medians = ResponseReconciler().provider_medians(["BTC", "ETH"], ["100", "102"])
        assert medians == [101.0, 0.0]

    def test_unparsable_report_yields_zero(self) -> None:
        """Reports with no parsable value contribute nothing."""
        medians = ResponseReconciler().provider_medians(["BTC"], ["n/a"])
        assert medians == [0.0]

    def test_surplus_values_ignored(self) -> None:
        """Values beyond the requested symbols are ignored."""
        medians = ResponseReconciler().provider_medians(["BTC"], ["100,999", "104,1"])
        assert medians == [102.0]

    def test_nan_report(self) -> None:
        """A NaN report value is fatal."""
        with pytest.raises(NonComparableValueError):
            ResponseReconciler().provider_medians(["BTC"], ["nan", "1.0"])


class TestReconcile:
    """Test the two-level reconciliation."""

    def test_one_provider_silent(self, caplog: pytest.LogCaptureFixture) -> None:
        """A silent provider is excluded; the other one decides."""
        reconciler = ResponseReconciler()
        with caplog.at_level(logging.WARNING):
            result = reconciler.reconcile(
                {KRAKEN: ["BTC", "ETH"], OKX: ["BTC", "ETH"]},
                {KRAKEN: ["100,200", "100,200"], OKX: []},
                multiplier=100,
            )

        assert result.rates == {"BTC": 10000, "ETH": 20000}
        assert result.absent_providers == ["OKX"]
        assert result.provider_medians == {"KRAKEN": {"BTC": 100.0, "ETH": 200.0}}
        assert "[okx] No validator reports" in caplog.text

    def test_missing_response_entry_is_silent(self) -> None:
        """A provider missing from raw_responses is treated as silent."""
        result = ResponseReconciler().reconcile(
            {KRAKEN: ["BTC"], OKX: ["BTC"]},
            {KRAKEN: ["50"]},
            multiplier=1,
        )
        assert result.rates == {"BTC": 50}
        assert result.absent_providers == ["OKX"]

    def test_cross_provider_median(self) -> None:
        """Provider medians are combined with another median."""
        result = ResponseReconciler().reconcile(
            {KRAKEN: ["BTC"], OKX: ["BTC"], BINANCE: ["BTC"]},
            {KRAKEN: ["100", "101"], OKX: ["90"], BINANCE: ["200", "202", "204"]},
            multiplier=10,
        )
        # provider medians 100.5, 90, 202
        assert result.rates == {"BTC": 1005}

    def test_even_provider_count(self) -> None:
        """Two providers average."""
        result = ResponseReconciler().reconcile(
            {KRAKEN: ["ETH"], OKX: ["ETH"]},
            {KRAKEN: ["10"], OKX: ["20"]},
            multiplier=1,
        )
        assert result.rates == {"ETH": 15}

    def test_different_symbol_sets(self) -> None:
        """Symbols are aligned per provider request order."""
        result = ResponseReconciler().reconcile(
            {KRAKEN: ["ETH", "BTC"], OKX: ["BTC"]},
            {KRAKEN: ["20,100"], OKX: ["110"]},
            multiplier=1,
        )
        assert result.rates == {"ETH": 20, "BTC": 105}

    def test_zero_is_not_absent(self) -> None:
        """A provider that answered without a value still votes 0."""
        result = ResponseReconciler().reconcile(
            {KRAKEN: ["BTC"], OKX: ["BTC"], BINANCE: ["BTC"]},
            {KRAKEN: ["garbage"], OKX: ["100"], BINANCE: ["110"]},
            multiplier=1,
        )
        assert result.rates == {"BTC": 100}
        assert result.absent_providers == []

    def test_all_silent(self) -> None:
        """A symbol whose providers are all silent is fatal."""
        with pytest.raises(NoDataForSymbolError) as exc_info:
            ResponseReconciler().reconcile(
                {KRAKEN: ["BTC", "ETH"], OKX: ["ETH"]},
                {KRAKEN: [], OKX: ["5"]},
                multiplier=1,
            )
        assert exc_info.value.symbol == "BTC"

    def test_validator_order_invariant(self) -> None:
        """Permuting validator reports does not change the result."""
        reconciler = ResponseReconciler()
        groups = {KRAKEN: ["BTC", "ETH"]}
        reports = ["100,10", "300,30", "200,20", "400,40"]

        expected = reconciler.reconcile(groups, {KRAKEN: reports}, 7).rates
        for shift in range(1, len(reports)):
            permuted = reports[shift:] + reports[:shift]
            assert reconciler.reconcile(groups, {KRAKEN: permuted}, 7).rates == expected

    def test_provider_order_invariant(self) -> None:
        """Permuting provider iteration order does not change the result."""
        reconciler = ResponseReconciler()
        groups = {KRAKEN: ["BTC", "ETH"], OKX: ["BTC"], BINANCE: ["ETH", "BTC"]}
        responses = {KRAKEN: ["100,20"], OKX: ["130"], BINANCE: ["22,90"]}

        expected = reconciler.reconcile(groups, responses, 1000).rates
        reversed_groups = dict(reversed(list(groups.items())))
        assert reconciler.reconcile(reversed_groups, responses, 1000).rates == expected
        assert expected == {"BTC": 100000, "ETH": 21000}

    def test_negative_multiplier(self) -> None:
        """Multipliers must be non-negative."""
        with pytest.raises(InvalidRequestError):
            ResponseReconciler().reconcile({KRAKEN: ["BTC"]}, {KRAKEN: ["1"]}, multiplier=-1)

    def test_rates_for_request_order(self) -> None:
        """rates_for() follows request order and repeats duplicates."""
        result = ReconciliationResult(rates={"BTC": 1, "ETH": 2})
        assert result.rates_for(["ETH", "BTC", "ETH"]) == [2, 1, 2]


class TestSingleSourceAggregator:
    """Test the single-source integer aggregation."""

    SYMBOLS = ["A", "B", "C"]

    def test_parse_report(self) -> None:
        """Whitespace-separated unsigned integers parse."""
        assert SingleSourceAggregator.parse_report("12  45\t78") == [12, 45, 78]
        assert SingleSourceAggregator.parse_report("+7 8") == [7, 8]

    @pytest.mark.parametrize(
        "raw,expected",
        [("1 -2", [1]), ("1.5 2", [2]), ("abc", []), ("1 2x", [1]), (str(U64_MAX + 1), [])],
    )
    def test_parse_report_drops_bad_tokens(self, raw: str, expected: list[int]) -> None:
        """Tokens that are not u64 literals are dropped."""
        assert SingleSourceAggregator.parse_report(raw) == expected

    def test_parse_report_u64_max(self) -> None:
        """The u64 maximum itself is accepted."""
        assert SingleSourceAggregator.parse_report(str(U64_MAX)) == [U64_MAX]

    def test_per_position_upper_median(self) -> None:
        """Per-position median over three reports."""
        result = SingleSourceAggregator().aggregate(
            self.SYMBOLS, ["12 45 78", "32 67 89", "54 23 91"]
        )
        assert result == [32, 45, 89]

    def test_unparsable_report_skipped(self) -> None:
        """Bad reports are skipped; even counts take the upper median."""
        result = SingleSourceAggregator().aggregate(
            self.SYMBOLS, ["xcjkzjkxkx", "32 67 89", "54 23 91"]
        )
        assert result == [54, 67, 91]

    def test_junk_token_dropped(self) -> None:
        """A report stays usable if it still has one value per symbol."""
        result = SingleSourceAggregator().aggregate(
            self.SYMBOLS, ["12 junk 45 78", "32 67 89", "54 23 91"]
        )
        assert result == [32, 45, 89]

    def test_overflow_token_dropped(self) -> None:
        """An out-of-range token is dropped like any other bad token."""
        result = SingleSourceAggregator().aggregate(
            self.SYMBOLS, [f"1 {U64_MAX + 1} 2 3", "5 6 7"]
        )
        assert result == [5, 6, 7]

    def test_single_good_report(self) -> None:
        """One good report is enough."""
        result = SingleSourceAggregator().aggregate(
            self.SYMBOLS, ["xcjkzjkxkx", "32 67 89", "reqfgwegdfdsfs"]
        )
        assert result == [32, 67, 89]

    def test_wrong_count_skipped(self) -> None:
        """Reports must carry exactly one value per symbol."""
        result = SingleSourceAggregator().aggregate(self.SYMBOLS, ["1 2", "4 5 6", "7 8 9 10"])
        assert result == [4, 5, 6]

    def test_six_symbols(self) -> None:
        """A single report for six symbols passes through."""
        symbols = ["A", "B", "C", "D", "E", "F"]
        assert SingleSourceAggregator().aggregate(symbols, ["4 1 2 3 5 6"]) == [4, 1, 2, 3, 5, 6]

    def test_no_usable_reports(self) -> None:
        """No usable report is fatal."""
        with pytest.raises(NoDataForSymbolError):
            SingleSourceAggregator().aggregate(self.SYMBOLS, ["nope", "still nope"])

        with pytest.raises(NoDataForSymbolError):
            SingleSourceAggregator().aggregate(self.SYMBOLS, [])
