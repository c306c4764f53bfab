"""
Prize Pool 只读客户端

汇总多条链上 Prize Pool 部署的链上状态:
余额、授权、委托以及 Ticket 的 TWAB 历史余额。

使用示例:
    providers = create_providers([1, 137])
    linked = await initialize_linked_prize_pool(providers, contract_list)
    balances = await linked.get_users_prize_pool_balances("0x...")
"""

from .blockchain import ContractReader, TicketReader, Web3Client, create_providers
from .errors import (
    ChainClientError,
    ConstructionError,
    InvalidAddressError,
    NetworkMismatchError,
    PrizePoolClientError,
    ResolutionError,
)
from .models import (
    ChildReference,
    ContractDescriptor,
    ContractList,
    ContractType,
    DepositAllowance,
    PrizePoolAddresses,
    PrizePoolBalances,
    PrizePoolTokenBalances,
    TokenData,
    create_contract_descriptor,
)
from .pools import (
    LinkedPrizePool,
    PrizePool,
    create_prize_pools,
    initialize_linked_prize_pool,
    initialize_prize_pools,
)

__version__ = "0.1.0"

__all__ = [
    # 客户端
    "Web3Client",
    "create_providers",
    "ContractReader",
    "TicketReader",
    # Prize Pool
    "PrizePool",
    "LinkedPrizePool",
    "create_prize_pools",
    "initialize_prize_pools",
    "initialize_linked_prize_pool",
    # 模型
    "ChildReference",
    "ContractDescriptor",
    "ContractList",
    "ContractType",
    "create_contract_descriptor",
    "TokenData",
    "PrizePoolTokenBalances",
    "PrizePoolBalances",
    "PrizePoolAddresses",
    "DepositAllowance",
    # 错误
    "PrizePoolClientError",
    "ChainClientError",
    "InvalidAddressError",
    "NetworkMismatchError",
    "ResolutionError",
    "ConstructionError",
]
