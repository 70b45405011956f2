from datetime import date

import pytest

from zerodte.analysis.atm import ATMSelector, analyze_order_flow
from zerodte.models.option import OptionContract


def make_contract(side: str, strike: float, volume: int = 100, open_interest: int = 1000, bid=1.0, ask=1.05):
    return OptionContract(
        symbol="SPY",
        option_symbol=f"SPY {side[0]}{strike:g}",
        side=side,
        strike=strike,
        expiration=date.today(),
        bid=bid,
        ask=ask,
        volume=volume,
        open_interest=open_interest,
    )


def test_selects_at_most_three_per_side_within_band():
    spot = 500.0
    strikes = [485, 490, 495, 498, 500, 502, 505, 510, 515]
    calls = [make_contract("CALL", strike) for strike in strikes]
    puts = [make_contract("PUT", strike) for strike in strikes]

    selection = ATMSelector().select(calls, puts, spot)

    assert len(selection.calls) == 3
    assert len(selection.puts) == 3
    for candidate in selection.all():
        assert abs(candidate.contract.strike - spot) / spot <= 0.02
    assert [c.contract.strike for c in selection.calls] == [500, 498, 502]


def test_nothing_inside_band_returns_empty_side():
    selection = ATMSelector().select([make_contract("CALL", 600)], [make_contract("PUT", 500)], 500.0)

    assert selection.calls == []
    assert len(selection.puts) == 1


def test_invalid_spot_yields_empty_selection():
    selection = ATMSelector().select([make_contract("CALL", 500)], [], 0)

    assert selection.all() == []


@pytest.mark.parametrize(
    "side, volume, bid, ask, expected_signal, unusual",
    [
        ("CALL", 600, 0.95, 1.0, "BULLISH", True),
        ("PUT", 600, 0.95, 1.0, "BEARISH", True),
        ("CALL", 600, 0.80, 1.0, "NEUTRAL", True),
        ("CALL", 400, 0.95, 1.0, "NEUTRAL", False),
    ],
)
def test_order_flow_heuristic(side, volume, bid, ask, expected_signal, unusual):
    flow = analyze_order_flow(make_contract(side, 500, volume=volume, open_interest=1000, bid=bid, ask=ask))

    assert flow.signal == expected_signal
    assert flow.has_unusual_volume is unusual
    assert flow.volume_oi_ratio == pytest.approx(volume / 1000)


def test_order_flow_without_open_interest_is_neutral():
    flow = analyze_order_flow(make_contract("CALL", 500, volume=5000, open_interest=0))

    assert flow.has_unusual_volume is False
    assert flow.volume_oi_ratio == 0.0
    assert flow.signal == "NEUTRAL"
