"""
GuildMarket – Application Layer
=================================
Casos de uso y servicios que orquestan el dominio.

- ports/: interfaces hacia infraestructura (IEventPublisher)
- services/: velas, circuit breaker, orquestador TradingEngine
- use_cases/: PriceSimulator, TradeExecutor, LimitOrderEngine
"""
