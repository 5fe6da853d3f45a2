# tests/test_deal_analyzer.py
import json
import math

import pytest

from dealengine.adapters.comp_providers import BridgeResponse, ProviderError
from dealengine.adapters.comps_cache import CompCache, InMemoryCacheStore
from dealengine.adapters.field_resolver import DictFieldResolver
from dealengine.adapters.http_retry import RetryPolicy
from dealengine.domain.comps import CompFilters, CompRecord
from dealengine.domain.market import MarketData
from dealengine.services.comp_resolver import CompResolver
from dealengine.services.deal_analyzer import analyze_deal, to_plain

from .fixtures.deals import flip_fields, rental_fields, sample_comps


class DownProvider:
    name = "bridge"

    def fetch(self, query, timeout_s):
        raise ProviderError("HTTP 503")


class StaticProvider:
    name = "bridge"

    def fetch(self, query, timeout_s):
        return BridgeResponse({"properties": [{"address": "1 A St", "price": 310000},
                                              {"address": "2 B St", "price": 330000}]})


def _comp_resolver(provider, clock, sleeps):
    return CompResolver(
        cache=CompCache(InMemoryCacheStore(clock=clock), freshness_ttl_s=3600, storage_ttl_s=3600, clock=clock),
        providers={"bridge": provider},
        policy=RetryPolicy(max_attempts=2, initial_delay_s=1.0, timeout_s=1.0),
        sleep=sleeps.append,
    )


def test_flip_with_supplied_comps():
    result = analyze_deal(DictFieldResolver(flip_fields()), "flip", comps=sample_comps())

    assert result.strategy == "flip"
    assert result.arv.source == "comps"
    assert result.flip.arv == pytest.approx(320_000)
    assert result.rental is None
    assert [s.name for s in result.flip_scenarios] == ["base", "worst", "best"]
    assert result.score.kind == "flip"
    assert result.report.score == result.score.total
    assert len(result.loan_scenarios) == 4
    assert result.irr is None


def test_supplied_comps_without_a_price_are_dropped():
    comps = sample_comps() + [CompRecord(address="1 Lot Ln", price=0), CompRecord(address="2 Lot Ln", price=-5)]
    result = analyze_deal(DictFieldResolver(flip_fields()), "flip", comps=comps)
    assert [c.address for c in result.comps] == [c.address for c in sample_comps()]
    assert result.arv.comp_count == 3


@pytest.mark.parametrize("term", [5, 10])
def test_short_loan_term_scenarios_stay_sane(term):
    result = analyze_deal(DictFieldResolver({**rental_fields(), "loanTerm": term}), "rental")
    assert all(s.total_interest >= 0 for s in result.loan_scenarios)
    io = result.loan_scenarios[2]
    assert io.io_years == term - 1
    assert io.amortizing_monthly_payment > 0


def test_flip_without_comps_flags_estimated_arv():
    result = analyze_deal(DictFieldResolver(flip_fields()), "flip")
    assert result.arv.degraded
    assert result.flip.arv == pytest.approx(220_000)
    titles = [a.title for a in result.alerts.alerts]
    assert "Comparables Unavailable" in titles


def test_rental_includes_projection_and_returns():
    result = analyze_deal(DictFieldResolver(rental_fields()), "rental", years=5, discount_rate=0.08)

    assert result.rental.monthly_rent == 2_800
    assert len(result.projection.cash_flows) == 6
    assert result.npv is not None
    assert result.break_even.break_even_rent_no_mgmt > 0
    assert result.flip is None
    assert result.insights.recommendation.score == result.score.total


def test_rental_market_inputs_flow_through():
    market = MarketData(avg_roi=0.05, avg_cap_rate=0.05, roi_values=[0.01, 0.02, 0.03])
    result = analyze_deal(DictFieldResolver(rental_fields()), "rental", market=market)
    assert result.insights.market_position.position == "top"
    assert "ROI vs Market Average" in [a.title for a in result.alerts.alerts]


def test_thresholds_override_rules():
    strict = analyze_deal(DictFieldResolver(rental_fields()), "rental", thresholds={"min_dscr": 5.0})
    assert "Low Debt Service Coverage" in [a.title for a in strict.alerts.alerts]
    assert strict.insights.recommendation.recommendation == "DO_NOT_PROCEED"


def test_filters_apply_to_supplied_comps():
    result = analyze_deal(DictFieldResolver(flip_fields()), "flip", comps=sample_comps(),
                          filters=CompFilters(min_beds=4))
    assert [c.address for c in result.comps] == ["7 Bay Blvd"]
    assert result.arv.arv == pytest.approx(340_000)


def test_comps_from_resolver(clock, sleeps):
    resolver = _comp_resolver(StaticProvider(), clock, sleeps)
    result = analyze_deal(DictFieldResolver(flip_fields()), "flip", comp_resolver=resolver, provider="bridge")
    assert result.arv.arv == pytest.approx(320_000)
    assert result.comps_notice is None


def test_provider_outage_degrades_to_estimate(clock, sleeps):
    resolver = _comp_resolver(DownProvider(), clock, sleeps)
    result = analyze_deal(DictFieldResolver(flip_fields()), "flip", comp_resolver=resolver, provider="bridge")
    assert result.comps == []
    assert result.arv.source == "purchase_price"
    assert result.comps_notice.startswith("Comp data unavailable from bridge")
    assert sleeps == [1.0]


def test_incomplete_address_skips_provider(clock, sleeps):
    fields = flip_fields()
    del fields["zip"]
    resolver = _comp_resolver(DownProvider(), clock, sleeps)
    result = analyze_deal(DictFieldResolver(fields), "flip", comp_resolver=resolver, provider="bridge")
    assert "address incomplete" in result.comps_notice
    assert sleeps == []


def test_unknown_strategy():
    with pytest.raises(ValueError):
        analyze_deal(DictFieldResolver(rental_fields()), "wholesale")


def test_to_dict_is_json_safe():
    fields = rental_fields()
    fields["downPayment"] = 100
    result = analyze_deal(DictFieldResolver(fields), "rental")
    assert math.isinf(result.rental.dscr)

    payload = result.to_dict()
    assert payload["rental"]["dscr"] is None
    assert payload["alerts"]["alerts"][0]["type"] in ("error", "warning", "info", "success")
    json.dumps(payload, allow_nan=False)


def test_to_plain_handles_nested_values():
    assert to_plain({"a": (1.0, float("nan")), "b": [float("-inf")]}) == {"a": [1.0, None], "b": [None]}
