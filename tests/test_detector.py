from polymarket_watcher.detector import SignalDetector, Thresholds, buy_pressure_ratio, classify
from polymarket_watcher.types import SELL, SignalType

from helpers import FakeClock, make_trade

T = 1_700_000_000_000


def _detector(clock: FakeClock, thresholds: Thresholds | None = None) -> SignalDetector:
    return SignalDetector(thresholds, clock=clock)


def test_three_buyers_over_cluster_threshold_is_wolf_pack() -> None:
    clock = FakeClock(T)
    detector = _detector(clock)
    detector.add(make_trade(T, 4000, wallet="a"))
    detector.add(make_trade(T, 3000, wallet="b"))
    detector.add(make_trade(T, 3001, wallet="c"))

    signals = detector.evaluate()
    assert len(signals) == 1
    signal = signals[0]
    assert signal.signal_type is SignalType.WOLF_PACK
    assert signal.unique_buyers == 3
    assert signal.buy_volume == 10001
    assert signal.ratio == 10001
    assert signal.market_id == "m1"


def test_cluster_threshold_is_strict() -> None:
    thresholds = Thresholds()
    assert classify(10000, 3, thresholds) is None
    assert classify(10000.01, 3, thresholds) is SignalType.WOLF_PACK


def test_single_whale_over_surge_threshold_is_volume_surge() -> None:
    clock = FakeClock(T)
    detector = _detector(clock)
    detector.add(make_trade(T, 15001, wallet="whale"))

    signals = detector.evaluate()
    assert [s.signal_type for s in signals] == [SignalType.VOLUME_SURGE]
    assert signals[0].unique_buyers == 1


def test_two_buyers_between_thresholds_do_not_signal() -> None:
    clock = FakeClock(T)
    detector = _detector(clock)
    detector.add(make_trade(T, 6000, wallet="a"))
    detector.add(make_trade(T, 6000, wallet="b"))
    assert detector.evaluate() == []


def test_ratio_filter_blocks_below_three_times_sells() -> None:
    thresholds = Thresholds(cluster_min_usd=100, surge_min_usd=150)
    clock = FakeClock(T)
    detector = _detector(clock, thresholds)
    detector.add(make_trade(T, 299, wallet="a"))
    detector.add(make_trade(T, 100, wallet="s", side=SELL))
    assert detector.evaluate() == []


def test_ratio_of_exactly_three_is_eligible() -> None:
    thresholds = Thresholds(cluster_min_usd=100, surge_min_usd=150)
    clock = FakeClock(T)
    detector = _detector(clock, thresholds)
    detector.add(make_trade(T, 300, wallet="a"))
    detector.add(make_trade(T, 100, wallet="s", side=SELL))

    signals = detector.evaluate()
    assert len(signals) == 1
    assert signals[0].signal_type is SignalType.VOLUME_SURGE
    assert signals[0].ratio == 3.0


def test_buy_pressure_ratio_without_sells_is_buy_volume() -> None:
    assert buy_pressure_ratio(5000, 0) == 5000
    assert buy_pressure_ratio(600, 200) == 3.0


def test_cooldown_suppresses_market_for_five_minutes() -> None:
    clock = FakeClock(T)
    detector = _detector(clock)
    detector.add(make_trade(T, 20000, wallet="a"))
    assert len(detector.evaluate()) == 1
    assert detector.last_alert_at("m1") == T

    clock.now = T + 299_999
    detector.add(make_trade(clock.now, 20000, wallet="b"))
    assert detector.evaluate() == []

    clock.now = T + 300_001
    detector.add(make_trade(clock.now, 20000, wallet="c"))
    signals = detector.evaluate()
    assert len(signals) == 1
    assert detector.last_alert_at("m1") == T + 300_001


def test_repeated_evaluate_without_new_trades_is_empty() -> None:
    clock = FakeClock(T)
    detector = _detector(clock)
    detector.add(make_trade(T, 20000, wallet="a"))
    assert len(detector.evaluate()) == 1
    clock.now = T + 1_000
    assert detector.evaluate() == []
    assert detector.evaluate() == []


def test_cooldown_is_per_market() -> None:
    clock = FakeClock(T)
    detector = _detector(clock)
    detector.add(make_trade(T, 20000, market_id="m1"))
    assert len(detector.evaluate()) == 1

    detector.add(make_trade(T, 20000, market_id="m2"))
    signals = detector.evaluate()
    assert [s.market_id for s in signals] == ["m2"]


def test_lowered_thresholds_are_honoured() -> None:
    clock = FakeClock(T)
    detector = _detector(clock, Thresholds(cluster_min_usd=100, surge_min_usd=150))
    detector.add(make_trade(T, 40, wallet="a"))
    detector.add(make_trade(T, 40, wallet="b"))
    detector.add(make_trade(T, 40, wallet="c"))
    assert [s.signal_type for s in detector.evaluate()] == [SignalType.WOLF_PACK]


def test_reset_clears_window_and_cooldowns() -> None:
    clock = FakeClock(T)
    detector = _detector(clock)
    detector.add(make_trade(T, 20000))
    assert len(detector.evaluate()) == 1

    detector.reset()
    assert len(detector.window) == 0
    assert detector.last_alert_at("m1") is None

    detector.add(make_trade(T, 20000))
    assert len(detector.evaluate()) == 1
