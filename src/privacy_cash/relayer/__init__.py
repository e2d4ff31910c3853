"""
Relayer/indexer HTTP client and fee configuration.
"""

from privacy_cash.relayer.api import RelayerClient, UtxoPage
from privacy_cash.relayer.fees import FeeConfigService

__all__ = ["FeeConfigService", "RelayerClient", "UtxoPage"]
