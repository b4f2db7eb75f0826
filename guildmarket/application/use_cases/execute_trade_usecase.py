"""
GuildMarket – Trade Executor
==============================
Compra / venta inmediata contra el saldo y el holding del usuario.

FLUJO:
  1. Validación de entrada (cantidad y precio positivos)
  2. Transacción:
       acción existe → activa → cuenta existe → no congelada →
       no suspendida → saldo (compra) o acciones (venta) suficientes
       saldo ± total, holding (promedio ponderado / decremento / borrado),
       StockTransaction + asiento ``stock_buy`` / ``stock_sell``
  3. Post-efectos best-effort (fuera de la transacción):
       velas, impacto de mercado (> 1000 acciones), chequeo de órdenes
       limitadas, evento ``trade_executed``
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from guildmarket.application.ports.event_publisher import IEventPublisher, Topics
from guildmarket.application.services.candlestick_aggregator import CandlestickAggregator
from guildmarket.application.services.trading_guards import load_tradable_account, load_tradable_stock
from guildmarket.application.use_cases.limit_order_usecase import Clock, LimitOrderEngine, utc_now
from guildmarket.domain.entities.account import weighted_average_price
from guildmarket.domain.entities.trade import (
    LedgerEntry,
    LedgerType,
    StockTransaction,
    TradeResult,
    TradeSide,
    validate_order_input,
)
from guildmarket.domain.exceptions.domain_errors import (
    InsufficientFundsError,
    InsufficientSharesError,
    NotFoundError,
)
from guildmarket.domain.repositories.market_store import IMarketStore
from guildmarket.domain.services.price_model import PriceModel, PriceModelConfig
from guildmarket.domain.value_objects.money import quantize
from guildmarket.shared.config.settings import Settings, settings as default_settings
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("trade_executor")


@dataclass
class PortfolioValue:
    """Valorización de cartera a precio de mercado."""
    guild_id: str
    user_id: str
    balance: Decimal
    holdings_value: Decimal
    total_value: Decimal
    positions: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "guildId": self.guild_id,
            "userId": self.user_id,
            "balance": float(self.balance),
            "holdingsValue": float(self.holdings_value),
            "totalValue": float(self.total_value),
            "positions": self.positions,
        }


class TradeExecutor:
    """
    Caso de uso: ejecutar trades inmediatos.

    La transacción del store es la única frontera de consistencia: no
    hay locks a nivel aplicación.
    """

    def __init__(
        self,
        store: IMarketStore,
        aggregator: CandlestickAggregator,
        limit_orders: LimitOrderEngine,
        event_publisher: IEventPublisher,
        config: Settings = None,
        rng: random.Random = None,
        clock: Clock = utc_now,
    ):
        self._store = store
        self._aggregator = aggregator
        self._limit_orders = limit_orders
        self._event_publisher = event_publisher
        self._config = config or default_settings
        self._model = PriceModel(PriceModelConfig.from_settings(self._config), rng)
        self._clock = clock

    async def execute_trade(
        self,
        guild_id: str,
        user_id: str,
        symbol: str,
        side: TradeSide | str,
        shares: int,
        price: Decimal,
    ) -> TradeResult:
        """
        Ejecuta una compra o venta a ``price``.

        Returns:
            TradeResult con el registro inmutable y los saldos resultantes

        Raises:
            DomainError: cualquier precondición fallida; no se muta nada
        """
        side = TradeSide.parse(side)
        places = self._config.price_decimal_places
        price = validate_order_input(shares, price, places)
        total = quantize(price * shares, places)
        now = self._clock()

        async with self._store.transaction() as session:
            stock = await load_tradable_stock(session, guild_id, symbol)
            account = await load_tradable_account(session, guild_id, user_id)
            holding = await session.get_holding(guild_id, user_id, symbol, for_update=True)

            if side is TradeSide.BUY:
                minimum = self._config.min_balance_after_trade
                if account.balance - total < minimum:
                    raise InsufficientFundsError(total, account.balance, minimum)
                balance_after = await session.update_balance(guild_id, user_id, -total)
                held = holding.shares if holding else 0
                shares_after = held + shares
                avg = weighted_average_price(
                    held,
                    holding.avg_price if holding else Decimal("0"),
                    shares,
                    price,
                )
                await session.update_holding(guild_id, user_id, symbol, shares_after, quantize(avg, 4))
                ledger_type = LedgerType.STOCK_BUY
            else:
                available = holding.shares if holding else 0
                if available < shares:
                    raise InsufficientSharesError(symbol, shares, available)
                balance_after = await session.update_balance(guild_id, user_id, total)
                shares_after = available - shares
                await session.update_holding(guild_id, user_id, symbol, shares_after, holding.avg_price)
                ledger_type = LedgerType.STOCK_SELL

            transaction = StockTransaction(
                guild_id=guild_id,
                user_id=user_id,
                symbol=symbol,
                side=side,
                shares=shares,
                price=price,
                total_amount=total,
                created_at=now,
            )
            await session.add_stock_transaction(transaction)
            await session.add_transaction(LedgerEntry(
                guild_id=guild_id,
                user_id=user_id,
                type=ledger_type,
                amount=total,
                memo=f"{side.value} {symbol} x{shares} @ {price}",
                created_at=now,
            ))

        logger.info(
            "Trade ejecutado: %s %s x%d @ %s (guild=%s, user=%s, saldo=%s)",
            side.value, symbol, shares, price, guild_id, user_id, balance_after,
        )

        new_market_price = await self._post_trade(stock.price, transaction)
        return TradeResult(
            transaction=transaction,
            balance_after=balance_after,
            holding_shares_after=shares_after,
            new_market_price=new_market_price,
        )

    async def _post_trade(self, market_price: Decimal, tx: StockTransaction) -> Optional[Decimal]:
        """Efectos no transaccionales: un fallo se loguea y no revierte el trade."""
        new_market_price = None
        try:
            await self._aggregator.record_tick(tx.guild_id, tx.symbol, tx.price, tx.shares, tx.created_at)
        except Exception:
            logger.exception("No se pudieron actualizar velas tras trade %s", tx.id)

        if tx.shares > self._config.market_impact_share_threshold:
            try:
                new_market_price = await self._apply_market_impact(tx)
            except Exception:
                logger.exception("No se pudo aplicar impacto de mercado para %s", tx.symbol)

        try:
            await self._limit_orders.check_and_execute(
                tx.guild_id, tx.symbol, new_market_price or market_price,
            )
        except Exception:
            logger.exception("Error chequeando órdenes limitadas tras trade %s", tx.id)

        payload = tx.to_dict()
        if new_market_price is not None:
            payload["newMarketPrice"] = float(new_market_price)
        await self._event_publisher.publish(Topics.TRADE_EXECUTED, payload)
        return new_market_price

    async def _apply_market_impact(self, tx: StockTransaction) -> Optional[Decimal]:
        """Un trade grande mueve el precio de inmediato, sin esperar al tick."""
        async with self._store.transaction() as session:
            stock = await session.get_stock_by_symbol(tx.guild_id, tx.symbol, for_update=True)
            if stock is None:
                return None
            impact = self._model.market_impact(tx.shares, tx.side.direction)
            old_price = stock.price
            new_price = self._model.apply_impact(old_price, impact)
            if new_price == old_price:
                return None
            await session.update_stock_price(tx.guild_id, tx.symbol, new_price)

        logger.info(
            "Impacto de mercado %s: %s → %s (%.3f%%, %d acciones)",
            tx.symbol, old_price, new_price, impact * 100, tx.shares,
        )
        await self._event_publisher.publish(Topics.STOCK_PRICE_UPDATED, {
            "guildId": tx.guild_id,
            "symbol": tx.symbol,
            "oldPrice": float(old_price),
            "newPrice": float(new_price),
            "changePercent": float((new_price - old_price) / old_price * 100),
            "volume": tx.shares,
            "reason": "market_impact",
        })
        return new_price

    async def calculate_portfolio_value(self, guild_id: str, user_id: str) -> PortfolioValue:
        """Saldo + holdings valorizados al precio actual de cada acción."""
        async with self._store.transaction() as session:
            account = await session.get_account_by_user(guild_id, user_id)
            if account is None:
                raise NotFoundError("account", user_id)
            holdings = await session.get_holdings_by_user(guild_id, user_id)

            holdings_value = Decimal("0")
            positions = []
            for holding in holdings:
                stock = await session.get_stock_by_symbol(guild_id, holding.symbol)
                if stock is None:
                    continue
                value = stock.price * holding.shares
                holdings_value += value
                positions.append({
                    "symbol": holding.symbol,
                    "shares": holding.shares,
                    "avgPrice": float(holding.avg_price),
                    "currentPrice": float(stock.price),
                    "marketValue": float(value),
                    "profitLoss": float(value - holding.cost_basis),
                })

        places = self._config.price_decimal_places
        return PortfolioValue(
            guild_id=guild_id,
            user_id=user_id,
            balance=account.balance,
            holdings_value=quantize(holdings_value, places),
            total_value=quantize(account.balance + holdings_value, places),
            positions=positions,
        )
