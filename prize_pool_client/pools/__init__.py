"""
Prize Pool 模块

- PrizePool: 单个 Prize Pool 部署
- LinkedPrizePool: 跨链的一组 Prize Pool
"""

from .prize_pool import PRIZE_POOL_ABI, PrizePool, create_prize_pools, initialize_prize_pools
from .linked_prize_pool import (
    LinkedPrizePool,
    extend_contracts_with_child_contracts,
    fetch_prize_pool_addresses,
    initialize_linked_prize_pool,
)

__all__ = [
    "PRIZE_POOL_ABI",
    "PrizePool",
    "create_prize_pools",
    "initialize_prize_pools",
    "LinkedPrizePool",
    "extend_contracts_with_child_contracts",
    "fetch_prize_pool_addresses",
    "initialize_linked_prize_pool",
]
