#!filepath: tests/backtest/test_execution.py
from __future__ import annotations

import pytest

from barsim.backtest.core.instrument import Instrument
from barsim.backtest.core.types import InstrumentInfo, OptionRight, Order, OrderExecution, OrderPriceSpec
from barsim.backtest.replay.clock import SimulationClock
from barsim.backtest.replay.source import BarListSource
from barsim.utils.errors import SimulationError


def _order(inst, qty, execution=OrderExecution.CLOSE_THIS_BAR):
    return Order(
        instrument=inst,
        quantity=qty,
        execution=execution,
        price_spec=OrderPriceSpec.MARKET,
    )


@pytest.fixture
def option_source(make_bar, day):
    """
    One option contract quoted on days 1..2 only.
    """

    def _make(symbol, strike, expiry_day, *, right=OptionRight.PUT, underlying="SPX", closes=(1.0, 2.0)):
        info = InstrumentInfo(
            nickname="SPX_OPT",
            is_option=True,
            option_strike=strike,
            option_expiry=day(expiry_day),
            option_right=right,
            option_underlying=underlying,
        )
        bars = [make_bar(i + 1, c) for i, c in enumerate(closes)]
        return BarListSource.from_bars("SPX_OPT", symbol, bars, info)

    return _make


# ==================================================
# CLOSE_THIS_BAR
# ==================================================
def test_buy_fills_at_prior_close(make_ctx, stock_source):
    ctx = make_ctx([stock_source("AAA", [50.0, 55.0, 60.0])])
    clock = SimulationClock(ctx)

    clock.advance()
    aaa = ctx.instruments["AAA"]
    ctx.pending_orders.append(_order(aaa, 10))

    clock.advance()

    assert ctx.cash == pytest.approx(99_500.0)
    assert ctx.positions == {aaa: 10}

    fill = ctx.log[-1]
    assert fill.fill_price == 50.0
    assert fill.bar.close == 50.0
    assert fill.net_asset_value == 100_000.0
    assert fill.commission == 0.0

    assert ctx.nav.read(0) == pytest.approx(99_500.0 + 10 * 55.0)


def test_bid_ask_used_when_quoted(make_ctx, make_bar):
    bars = [make_bar(1, 50.0, bid=49.5, ask=50.5), make_bar(2, 52.0, bid=51.5, ask=52.5), make_bar(3, 53.0)]
    ctx = make_ctx([BarListSource.from_bars("AAA", "AAA", bars)])
    clock = SimulationClock(ctx)

    clock.advance()
    aaa = ctx.instruments["AAA"]
    ctx.pending_orders.append(_order(aaa, 10))
    clock.advance()
    assert ctx.log[-1].fill_price == 50.5

    ctx.pending_orders.append(_order(aaa, -4))
    clock.advance()
    assert ctx.log[-1].fill_price == 51.5
    assert ctx.positions[aaa] == 6


def test_stale_instrument_fills_at_latest_bar(make_ctx, stock_source):
    # BBB 只有第 1 天的数据；第 2 天下单后第 3 天成交，仍用 BBB 最新一根
    ctx = make_ctx([stock_source("AAA", [1.0, 1.0, 1.0]), stock_source("BBB", [20.0])])
    clock = SimulationClock(ctx)

    clock.advance()
    clock.advance()
    bbb = ctx.instruments["BBB"]
    ctx.pending_orders.append(_order(bbb, 1))
    clock.advance()

    assert ctx.log[-1].fill_price == 20.0


# ==================================================
# OPEN_NEXT_BAR
# ==================================================
def test_open_next_bar_fills_at_open(make_ctx, make_bar):
    bars = [make_bar(1, 50.0), make_bar(2, 55.0, open=52.0)]
    ctx = make_ctx([BarListSource.from_bars("AAA", "AAA", bars)])
    clock = SimulationClock(ctx)

    clock.advance()
    aaa = ctx.instruments["AAA"]
    ctx.pending_orders.append(_order(aaa, 10, OrderExecution.OPEN_NEXT_BAR))
    clock.advance()

    fill = ctx.log[-1]
    assert fill.fill_price == 52.0
    assert fill.bar.time == bars[1].time
    assert fill.net_asset_value == 100_000.0
    assert ctx.cash == pytest.approx(100_000.0 - 520.0)


# ==================================================
# bookkeeping
# ==================================================
def test_closing_position_removes_entry(make_ctx, stock_source):
    ctx = make_ctx([stock_source("AAA", [50.0, 55.0, 60.0])])
    clock = SimulationClock(ctx)

    clock.advance()
    aaa = ctx.instruments["AAA"]
    ctx.pending_orders.append(_order(aaa, 10))
    clock.advance()
    ctx.pending_orders.append(_order(aaa, -10))
    clock.advance()

    assert aaa not in ctx.positions
    assert ctx.cash == pytest.approx(100_000.0 - 500.0 + 550.0)
    assert ctx.nav.read(0) == pytest.approx(ctx.cash)


def test_pending_orders_consumed_every_bar(make_ctx, stock_source):
    ctx = make_ctx([stock_source("AAA", [50.0, 55.0, 60.0])])
    clock = SimulationClock(ctx)

    clock.advance()
    aaa = ctx.instruments["AAA"]
    ctx.pending_orders.extend([_order(aaa, 1), _order(aaa, 2)])
    clock.advance()

    assert ctx.pending_orders == []
    assert len(ctx.log) == 2
    assert ctx.positions[aaa] == 3

    clock.advance()
    assert len(ctx.log) == 2


def test_order_for_unknown_instrument_is_fatal(make_ctx, stock_source):
    ctx = make_ctx([stock_source("AAA", [50.0, 55.0])])
    clock = SimulationClock(ctx)

    clock.advance()
    ghost = Instrument("ZZZ", InstrumentInfo(nickname="zzz"), cache=ctx.cache)
    ctx.pending_orders.append(_order(ghost, 1))

    with pytest.raises(SimulationError):
        clock.advance()


def test_option_position_marked_with_multiplier(make_ctx, stock_source, option_source):
    ctx = make_ctx([
        stock_source("SPX", [100.0, 100.0, 100.0]),
        option_source("P100", 100.0, 20, closes=(1.0, 2.0, 3.0)),
    ])
    clock = SimulationClock(ctx)

    clock.advance()
    ctx.pending_orders.append(_order(ctx.instruments["P100"], 2))
    clock.advance()

    assert ctx.cash == pytest.approx(100_000.0 - 2 * 100 * 1.0)
    assert ctx.nav.read(0) == pytest.approx(ctx.cash + 2 * 100 * 2.0)


# ==================================================
# option expiry
# ==================================================
def test_put_settles_on_close_at_expiry_not_after_gap(make_ctx, stock_source, option_source, day):
    # SPX 到期日收 95，次日跳空到 80；结算用到期日收盘
    ctx = make_ctx([
        stock_source("SPX", [100.0, 95.0, 80.0, 80.0]),
        option_source("P100", 100.0, 2),
    ])
    clock = SimulationClock(ctx)

    clock.advance()
    p100 = ctx.instruments["P100"]
    ctx.pending_orders.append(_order(p100, 1))
    clock.advance()                      # day 2: bought at 1.0, not yet expired
    assert ctx.positions == {p100: 1}
    cash_before = ctx.cash

    clock.advance()                      # day 3: expiry day 2 < day 3

    assert p100 not in ctx.positions
    settle = ctx.log[-1]
    assert settle.order.execution is OrderExecution.OPTION_EXPIRY_CLOSE
    assert settle.order.quantity == -1
    assert settle.fill_price == pytest.approx(5.0)
    assert settle.bar.time == day(2)
    assert ctx.cash - cash_before == pytest.approx(500.0)
    assert ctx.nav.read(0) == pytest.approx(ctx.cash)


@pytest.mark.parametrize("strike, expected", [(90.0, 5.0), (100.0, 0.0)])
def test_call_expires_at_intrinsic_value(make_ctx, stock_source, option_source, strike, expected):
    ctx = make_ctx([
        stock_source("SPX", [100.0, 95.0, 120.0]),
        option_source("C", strike, 2, right=OptionRight.CALL),
    ])
    clock = SimulationClock(ctx)

    clock.advance()
    ctx.pending_orders.append(_order(ctx.instruments["C"], -3))
    clock.advance()
    clock.advance()

    settle = ctx.log[-1]
    assert settle.order.quantity == 3
    assert settle.fill_price == pytest.approx(expected)
    assert ctx.positions == {}


def test_expiry_over_weekend_uses_last_close_before_expiry(make_ctx, make_bar, option_source, day):
    # 到期日 (day 3) 无标的 bar；下一根在 day 5
    spx = BarListSource.from_bars("SPX", "SPX", [make_bar(1, 100.0), make_bar(2, 96.0), make_bar(5, 70.0)])
    ctx = make_ctx([spx, option_source("P100", 100.0, 3)])
    clock = SimulationClock(ctx)

    clock.advance()
    ctx.pending_orders.append(_order(ctx.instruments["P100"], 2))
    clock.advance()
    clock.advance()                      # day 5

    settle = ctx.log[-1]
    assert settle.order.execution is OrderExecution.OPTION_EXPIRY_CLOSE
    assert settle.bar.time == day(2)
    assert settle.fill_price == pytest.approx(4.0)


def test_expiry_with_unknown_underlying_is_fatal(make_ctx, stock_source, option_source):
    ctx = make_ctx([
        stock_source("SPX", [100.0, 98.0, 95.0]),
        option_source("P100", 100.0, 2, underlying="NDX"),
    ])
    clock = SimulationClock(ctx)

    clock.advance()
    ctx.pending_orders.append(_order(ctx.instruments["P100"], 1))
    clock.advance()

    with pytest.raises(SimulationError):
        clock.advance()
