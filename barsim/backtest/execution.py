from __future__ import annotations

from typing import Tuple

from barsim import logs
from barsim.backtest.context import RunContext
from barsim.backtest.core.instrument import Instrument
from barsim.backtest.core.types import Bar, LogEntry, Order, OrderExecution, OrderPriceSpec
from barsim.utils.errors import SimulationError

"""
{#!filepath: barsim/backtest/execution.py}

ExecutionEngine (FINAL / FROZEN)

Role:
- Fill pending orders against the bar the clock just absorbed.
- Expire option positions the bar after their expiry date.
- Own cash / position / NAV bookkeeping.

Fill price by execution timing:
- CLOSE_THIS_BAR      : prior bar ask (buy) / bid (sell) if quoted, else close
- OPEN_NEXT_BAR       : current bar open
- OPTION_EXPIRY_CLOSE : intrinsic value vs the underlying close on or before expiry

Invariants:
- Each order is consumed exactly once; unfilled orders never carry over.
- A position entry exists only while its quantity is non-zero.
- Does NOT advance time.
"""


class ExecutionEngine:
    def __init__(self, ctx: RunContext):
        self.ctx = ctx

    # --------------------------------------------------
    # per-bar entry points (called by the clock)
    # --------------------------------------------------
    def execute_pending(self) -> None:
        orders = list(self.ctx.pending_orders)
        self.ctx.pending_orders.clear()

        for order in orders:
            self.execute(order)

    def expire_options(self) -> None:
        today = self.ctx.now.date()

        expiring = [
            inst
            for inst in self.ctx.positions
            if inst.is_option
            and inst.option_expiry is not None
            and inst.option_expiry.date() < today
        ]

        for inst in expiring:
            self._expire(inst)

    def mark_to_market(self) -> float:
        nav = self.ctx.cash
        for inst, qty in self.ctx.positions.items():
            nav += qty * inst.multiplier * inst.close.read(0)
        return nav

    # --------------------------------------------------
    def execute(self, order: Order) -> LogEntry:
        inst = order.instrument
        if self.ctx.instruments.get(inst.symbol) is not inst:
            raise SimulationError(
                f"[Execution] order for unknown instrument {inst.symbol}"
            )
        if order.price_spec is not OrderPriceSpec.MARKET:
            raise SimulationError(f"[Execution] unsupported price spec {order.price_spec}")

        bar, nav, price = self._fill_terms(order)

        # add position
        qty = self.ctx.positions.get(inst, 0) + order.quantity
        if qty == 0:
            self.ctx.positions.pop(inst, None)
        else:
            self.ctx.positions[inst] = qty

        # pay for it
        self.ctx.cash -= inst.multiplier * order.quantity * price

        entry = LogEntry(
            symbol=inst.symbol,
            order=order,
            bar=bar,
            net_asset_value=nav,
            fill_price=price,
            commission=0.0,
        )
        self.ctx.log.append(entry)

        logs.debug(
            f"[Execution] {order.execution.value} {inst.symbol} qty={order.quantity} "
            f"price={price} cash={self.ctx.cash:.2f} ts={self.ctx.now}"
        )
        return entry

    def _fill_terms(self, order: Order) -> Tuple[Bar, float, float]:
        inst = order.instrument

        if order.execution is OrderExecution.CLOSE_THIS_BAR:
            bar = inst.read(self._prior_offset(inst))
            # NAV of the prior bar; current bar's NAV is not written yet
            nav = self.ctx.nav.try_read(0)
            if nav is None:
                nav = self.ctx.cash
            if bar.has_bid_ask:
                price = bar.ask if order.quantity > 0 else bar.bid
            else:
                price = bar.close
            return bar, nav, float(price)

        if order.execution is OrderExecution.OPEN_NEXT_BAR:
            bar = inst.read(0)
            return bar, self.mark_to_market(), float(bar.open)

        if order.execution is OrderExecution.OPTION_EXPIRY_CLOSE:
            return self._settlement_bar(inst), self.mark_to_market(), float(order.price)

        raise SimulationError(f"[Execution] unknown execution {order.execution}")

    def _prior_offset(self, inst: Instrument) -> int:
        # 本 bar 没有该 instrument 的新数据 → 最新一根就是“上一根”
        return 1 if inst.read(0).time == self.ctx.now else 0

    # --------------------------------------------------
    # option expiry
    # --------------------------------------------------
    def _underlying(self, inst: Instrument) -> Instrument:
        underlying = self.ctx.instruments.get(inst.option_underlying or "")
        if underlying is None:
            raise SimulationError(
                f"[Execution] option {inst.symbol} has unknown underlying {inst.option_underlying}"
            )
        return underlying

    def _settlement_bar(self, inst: Instrument) -> Bar:
        """
        Underlying's last bar dated on or before the option's expiry date.
        Expiry fires one bar late, so the latest bar is usually past it.
        """
        underlying = self._underlying(inst)
        expiry = inst.option_expiry.date()

        offset = 0
        bar = underlying.try_read(offset)
        while bar is not None:
            if bar.time.date() <= expiry:
                return bar
            offset += 1
            bar = underlying.try_read(offset)

        raise SimulationError(
            f"[Execution] no {underlying.symbol} bar on or before expiry of {inst.symbol}"
        )

    def _expire(self, inst: Instrument) -> LogEntry:
        underlying_close = self._settlement_bar(inst).close

        if inst.option_is_put:
            price = max(0.0, inst.option_strike - underlying_close)
        else:
            price = max(0.0, underlying_close - inst.option_strike)

        order = Order(
            instrument=inst,
            quantity=-self.ctx.positions[inst],
            execution=OrderExecution.OPTION_EXPIRY_CLOSE,
            price_spec=OrderPriceSpec.MARKET,
            price=price,
        )

        logs.info(
            f"[Execution] expire {inst.symbol} strike={inst.option_strike} "
            f"underlying={underlying_close} settle={price} qty={order.quantity}"
        )
        return self.execute(order)
