"""
Fixtures compartidas.

Cada escenario async corre con ``asyncio.run`` dentro de un test
síncrono. El mercado (store, locks, motor) se arma DENTRO de la
corrutina con la factory ``make_market`` para que todo viva en el mismo
event loop.
"""

import pytest

from support import build_market


@pytest.fixture
def make_market():
    """Factory de mercados en memoria (llamar dentro de la corrutina)."""
    return build_market
