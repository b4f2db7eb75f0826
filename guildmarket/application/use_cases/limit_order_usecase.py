"""
GuildMarket – Limit Order Engine
==================================
Órdenes limitadas con reserva previa de fondos / acciones.

Orquesta:
1. Creación: valida, RESERVA (débito de saldo o descuento de holding)
   y persiste la orden PENDING, todo en una transacción.
2. Chequeo tras cada tick / trade: ejecuta al precio OBJETIVO las
   órdenes disparadas, salvo que el precio se haya alejado más de 15%
   del objetivo (protección flash-crash: la orden sigue pendiente).
3. Cancelación y vencimiento: liberan exactamente lo reservado en la
   misma transacción que la transición de estado.
4. Publicación de eventos.

INVARIANTE:
    lo reservado al crear == lo consumido al ejecutar + lo liberado
    (reembolso de compra por diferencia, o acciones devueltas al cerrar).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from guildmarket.application.ports.event_publisher import IEventPublisher, Topics
from guildmarket.application.services.candlestick_aggregator import CandlestickAggregator
from guildmarket.application.services.trading_guards import load_tradable_account, load_tradable_stock
from guildmarket.domain.entities.account import weighted_average_price
from guildmarket.domain.entities.limit_order import LimitOrder, LimitOrderStatus
from guildmarket.domain.entities.trade import (
    LedgerEntry,
    LedgerType,
    StockTransaction,
    TradeSide,
    validate_order_input,
)
from guildmarket.domain.exceptions.domain_errors import (
    InsufficientFundsError,
    InsufficientSharesError,
    InvalidOrderError,
    NotFoundError,
)
from guildmarket.domain.repositories.market_store import IMarketSession, IMarketStore
from guildmarket.domain.value_objects.money import quantize, to_decimal
from guildmarket.shared.config.settings import Settings, settings as default_settings
from guildmarket.shared.logging.logger import get_logger

logger = get_logger("limit_orders")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LimitOrderEngine:
    """
    Caso de uso: órdenes limitadas.

    No mantiene estado propio: la verdad está en el store, y cada
    operación relee la orden bajo bloqueo antes de tocarla.
    """

    def __init__(
        self,
        store: IMarketStore,
        aggregator: CandlestickAggregator,
        event_publisher: IEventPublisher,
        config: Settings = None,
        clock: Clock = utc_now,
    ):
        self._store = store
        self._aggregator = aggregator
        self._event_publisher = event_publisher
        self._config = config or default_settings
        self._clock = clock

    # ─── Creación ──────────────────────────────────────────────────────

    async def create_limit_order(
        self,
        guild_id: str,
        user_id: str,
        symbol: str,
        side: TradeSide | str,
        shares: int,
        target_price: Decimal,
        expires_at: Optional[datetime] = None,
    ) -> LimitOrder:
        """
        Crea una orden PENDING reservando fondos (compra) o acciones (venta).

        Raises:
            InvalidOrderError, NotFoundError, TradingHaltedError,
            AccountFrozenError, TradingSuspendedError,
            InsufficientFundsError, InsufficientSharesError
        """
        side = TradeSide.parse(side)
        places = self._config.price_decimal_places
        target = validate_order_input(shares, target_price, places)
        now = self._clock()
        if expires_at is None:
            expires_at = now + timedelta(days=self._config.limit_order_default_ttl_days)
        else:
            if expires_at.tzinfo is None:
                # Sin offset se interpreta como UTC
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= now:
                raise InvalidOrderError("La fecha de vencimiento ya pasó", field="expires_at")

        total = quantize(target * shares, places)

        async with self._store.transaction() as session:
            await load_tradable_stock(session, guild_id, symbol)
            account = await load_tradable_account(session, guild_id, user_id)

            order = LimitOrder(
                guild_id=guild_id,
                user_id=user_id,
                symbol=symbol,
                side=side,
                shares=shares,
                target_price=target,
                total_amount=total,
                expires_at=expires_at,
                created_at=now,
            )

            if side is TradeSide.BUY:
                minimum = self._config.min_balance_after_trade
                if account.balance - total < minimum:
                    raise InsufficientFundsError(total, account.balance, minimum)
                await session.update_balance(guild_id, user_id, -total)
                order.reserved_amount = total
                memo = f"Reserva orden limitada de compra {symbol} x{shares} @ {target}"
            else:
                holding = await session.get_holding(guild_id, user_id, symbol, for_update=True)
                available = holding.shares if holding else 0
                if available < shares:
                    raise InsufficientSharesError(symbol, shares, available)
                await session.update_holding(
                    guild_id, user_id, symbol, holding.shares - shares, holding.avg_price,
                )
                order.reserved_shares = shares
                order.reserved_avg_price = holding.avg_price
                memo = f"Reserva orden limitada de venta {symbol} x{shares} @ {target}"

            await session.create_limit_order(order)
            await session.add_transaction(LedgerEntry(
                guild_id=guild_id,
                user_id=user_id,
                type=LedgerType.LIMIT_ORDER_RESERVE,
                amount=total,
                memo=memo,
                created_at=now,
            ))

        logger.info(
            "Orden limitada %s creada: %s %s x%d @ %s (guild=%s, user=%s)",
            order.id, side.value, symbol, shares, target, guild_id, user_id,
        )
        return order

    # ─── Ejecución ─────────────────────────────────────────────────────

    async def check_and_execute(
        self,
        guild_id: str,
        symbol: str,
        current_price: Decimal,
        now: Optional[datetime] = None,
    ) -> List[LimitOrder]:
        """
        Ejecuta las órdenes pendientes que ``current_price`` dispara.

        Re-ejecutar sobre órdenes ya ejecutadas es un no-op: solo se
        consideran órdenes PENDING, releídas bajo bloqueo.

        Returns:
            Órdenes ejecutadas en esta llamada
        """
        now = now or self._clock()
        price = to_decimal(current_price)

        async with self._store.transaction() as session:
            candidates = await session.check_pending_orders_for_symbol(guild_id, symbol, price)

        executed: List[LimitOrder] = []
        for candidate in candidates:
            if candidate.is_expired(now):
                continue
            try:
                if self._is_flash_crash(candidate, price):
                    logger.warning(
                        "Flash-crash: orden %s (%s @ %s) omitida, precio actual %s",
                        candidate.id, candidate.side.value, candidate.target_price, price,
                    )
                    continue
                order = await self._execute_order(candidate.id, price, now)
            except Exception:
                logger.exception("Error ejecutando orden limitada %s", candidate.id)
                continue
            if order is not None:
                executed.append(order)

        for order in executed:
            await self._after_execution(order, now)
        return executed

    def _is_flash_crash(self, order: LimitOrder, price: Decimal) -> bool:
        if order.target_price <= 0:
            # Objetivo no ejecutable: nunca se dispara
            return True
        deviation = abs(price - order.target_price) / order.target_price
        return deviation > to_decimal(self._config.flash_crash_threshold)

    async def _execute_order(
        self, order_id: str, price: Decimal, now: datetime,
    ) -> Optional[LimitOrder]:
        places = self._config.price_decimal_places

        async with self._store.transaction() as session:
            order = await session.get_limit_order(order_id, for_update=True)
            if order is None or not order.is_pending or not order.is_triggered_by(price):
                return None

            exec_price = order.target_price
            cost = quantize(exec_price * order.shares, places)

            # La transición va antes que cualquier movimiento de saldo/holding
            order.mark_executed(exec_price, order.shares, now)
            if not await session.execute_limit_order(order):
                return None

            if order.side is TradeSide.BUY:
                holding = await session.get_holding(
                    order.guild_id, order.user_id, order.symbol, for_update=True,
                )
                held = holding.shares if holding else 0
                held_avg = holding.avg_price if holding else Decimal("0")
                avg = weighted_average_price(held, held_avg, order.shares, exec_price)
                await session.update_holding(
                    order.guild_id, order.user_id, order.symbol,
                    held + order.shares, quantize(avg, 4),
                )
                refund = order.reserved_amount - cost
                if refund > 0:
                    await session.update_balance(order.guild_id, order.user_id, refund)
                    await session.add_transaction(LedgerEntry(
                        guild_id=order.guild_id,
                        user_id=order.user_id,
                        type=LedgerType.LIMIT_ORDER_RELEASE,
                        amount=refund,
                        memo=f"Reembolso de reserva orden {order.id}",
                        created_at=now,
                    ))
                ledger_type = LedgerType.STOCK_BUY
            else:
                await session.update_balance(order.guild_id, order.user_id, cost)
                ledger_type = LedgerType.STOCK_SELL

            await session.add_stock_transaction(StockTransaction(
                guild_id=order.guild_id,
                user_id=order.user_id,
                symbol=order.symbol,
                side=order.side,
                shares=order.shares,
                price=exec_price,
                total_amount=cost,
                created_at=now,
            ))
            await session.add_transaction(LedgerEntry(
                guild_id=order.guild_id,
                user_id=order.user_id,
                type=ledger_type,
                amount=cost,
                memo=f"Orden limitada {order.id}: {order.symbol} x{order.shares} @ {exec_price}",
                created_at=now,
            ))

        logger.info(
            "Orden limitada %s ejecutada: %s %s x%d @ %s (mercado %s)",
            order.id, order.side.value, order.symbol, order.shares, exec_price, price,
        )
        return order

    async def _after_execution(self, order: LimitOrder, now: datetime) -> None:
        try:
            await self._aggregator.record_tick(
                order.guild_id, order.symbol, order.executed_price, order.executed_shares, now,
            )
        except Exception:
            logger.exception("No se pudieron actualizar velas tras la orden %s", order.id)

        await self._event_publisher.publish(Topics.LIMIT_ORDER_EXECUTED, {
            "guildId": order.guild_id,
            "userId": order.user_id,
            "orderId": order.id,
            "symbol": order.symbol,
            "type": order.side.value,
            "shares": order.executed_shares,
            "targetPrice": float(order.target_price),
            "executedPrice": float(order.executed_price),
            "totalAmount": float(order.total_amount),
        })

    # ─── Cancelación y vencimiento ─────────────────────────────────────

    async def cancel_limit_order(self, guild_id: str, user_id: str, order_id: str) -> LimitOrder:
        """Cancela una orden propia PENDING y libera su reserva."""
        now = self._clock()
        async with self._store.transaction() as session:
            order = await session.get_limit_order(order_id, for_update=True)
            if order is None or order.guild_id != guild_id:
                raise NotFoundError("order", order_id)
            if order.user_id != user_id:
                raise InvalidOrderError("La orden pertenece a otro usuario", field="order_id")
            released = await self._close_order(session, order, LimitOrderStatus.CANCELLED, now)

        logger.info("Orden limitada %s cancelada por %s", order.id, user_id)
        await self._event_publisher.publish(
            Topics.LIMIT_ORDER_CANCELLED, self._closed_payload(order, released),
        )
        return order

    async def expire_limit_orders(self, now: Optional[datetime] = None) -> List[LimitOrder]:
        """Barrido: vence toda orden PENDING con ``expires_at <= now``."""
        now = now or self._clock()
        async with self._store.transaction() as session:
            candidates = await session.get_expired_pending_orders(now)

        expired: List[LimitOrder] = []
        for candidate in candidates:
            try:
                async with self._store.transaction() as session:
                    order = await session.get_limit_order(candidate.id, for_update=True)
                    if order is None or not order.is_pending:
                        continue
                    released = await self._close_order(session, order, LimitOrderStatus.EXPIRED, now)
            except Exception:
                logger.exception("Error venciendo orden limitada %s", candidate.id)
                continue
            expired.append(order)
            await self._event_publisher.publish(
                Topics.LIMIT_ORDER_EXPIRED, self._closed_payload(order, released),
            )

        if expired:
            logger.info("%d órdenes limitadas vencidas", len(expired))
        return expired

    async def _close_order(
        self,
        session: IMarketSession,
        order: LimitOrder,
        status: LimitOrderStatus,
        now: datetime,
    ) -> Decimal:
        """
        Transición a CANCELLED/EXPIRED + liberación simétrica de la reserva.

        Returns:
            Monto liberado (saldo devuelto, o costo de las acciones devueltas)
        """
        order.mark_closed(status)

        if order.side is TradeSide.BUY:
            released = order.reserved_amount
            if released > 0:
                await session.update_balance(order.guild_id, order.user_id, released)
        else:
            holding = await session.get_holding(
                order.guild_id, order.user_id, order.symbol, for_update=True,
            )
            held = holding.shares if holding else 0
            held_avg = holding.avg_price if holding else Decimal("0")
            restored_avg = order.reserved_avg_price
            if restored_avg is None:
                restored_avg = held_avg or order.target_price
            avg = weighted_average_price(held, held_avg, order.reserved_shares, restored_avg)
            await session.update_holding(
                order.guild_id, order.user_id, order.symbol,
                held + order.reserved_shares, quantize(avg, 4),
            )
            released = quantize(restored_avg * order.reserved_shares, self._config.price_decimal_places)

        if not await session.cancel_limit_order(order):
            raise InvalidOrderError(f"La orden {order.id} ya no está pendiente", field="status")

        await session.add_transaction(LedgerEntry(
            guild_id=order.guild_id,
            user_id=order.user_id,
            type=LedgerType.LIMIT_ORDER_RELEASE,
            amount=released,
            memo=f"Liberación de reserva orden {order.id} ({status.value})",
            created_at=now,
        ))
        return released

    @staticmethod
    def _closed_payload(order: LimitOrder, released: Decimal) -> dict:
        return {
            "guildId": order.guild_id,
            "userId": order.user_id,
            "orderId": order.id,
            "symbol": order.symbol,
            "type": order.side.value,
            "shares": order.shares,
            "targetPrice": float(order.target_price),
            "status": order.status.value,
            "releasedAmount": float(released),
            "releasedShares": order.reserved_shares,
        }

    # ─── Consultas ─────────────────────────────────────────────────────

    async def get_limit_orders(
        self,
        guild_id: str,
        user_id: str,
        status: Optional[LimitOrderStatus | str] = None,
    ) -> List[LimitOrder]:
        if status is not None:
            try:
                status = LimitOrderStatus(status)
            except ValueError:
                raise InvalidOrderError(f"Estado inválido: {status!r}", field="status")
        async with self._store.transaction() as session:
            return await session.get_limit_orders_by_user(guild_id, user_id, status)
