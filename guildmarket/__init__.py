"""
GuildMarket
=============
Mercado de acciones virtual para economías de servidores de Discord:
cuentas, emisión de acciones, ejecución de trades, órdenes limitadas,
velas multi-timeframe y shocks de precio por noticias.
"""

__version__ = "0.3.0"
