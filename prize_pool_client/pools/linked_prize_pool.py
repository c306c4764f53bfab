"""
Linked Prize Pool
一组分布在多条链上的 Prize Pool

initialize_linked_prize_pool() 的流程:
1. 按链分组所有 Prize Pool 主合约
2. 每条链发起一次 multicall，读取所有 Prize Pool 的 Token / Ticket 地址
3. 各链并发执行，某条链失败只会排除该链，不影响其他链
4. 把查到的地址记录为主合约的 children，并为缺失的子合约补充合约描述
5. 用补充后的合约列表创建所有 PrizePool
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..blockchain.contract_reader import ERC20_ABI, TICKET_ABI
from ..blockchain.web3_client import CallRequest, Web3Client
from ..errors import ChainClientError, ConstructionError, ResolutionError
from ..models import (
    ContractDescriptor,
    ContractList,
    ContractType,
    PrizePoolAddresses,
    PrizePoolBalances,
    create_contract_descriptor,
)
from ..utils.concurrency import gather_settled, partition_settled
from ..utils.contract_list import (
    extend_contracts_with_children,
    get_prize_pool_contracts,
    index_contracts,
    sort_contracts_by_chain_id,
)
from ..utils.validation import validate_client_network
from .prize_pool import PRIZE_POOL_ABI, PrizePool, create_prize_pools

logger = logging.getLogger(__name__)

# {chain_id: {小写的 Prize Pool 地址: PrizePoolAddresses}}
PrizePoolAddressesByChainId = Dict[int, Dict[str, PrizePoolAddresses]]


class LinkedPrizePool:
    """
    Linked Prize Pool（一组 Prize Pool）

    提供跨链汇总的只读查询。Prize Pool 集合在创建后不再变化，
    各 PrizePool 内部的子合约缓存仍然按需填充。
    """

    def __init__(self, providers: Mapping[int, Web3Client], contract_list: ContractList):
        """
        Args:
            providers: {chain_id: Web3Client}
            contract_list: 合约列表，Prize Pool 主合约需要已经声明 children
                           才能跳过链上解析
        """
        self.providers: Dict[int, Web3Client] = dict(providers)
        self.contract_list = contract_list
        self.prize_pools: Tuple[PrizePool, ...] = tuple(
            create_prize_pools(self.providers, contract_list.contracts)
        )

    @property
    def chain_ids(self) -> List[int]:
        """包含 Prize Pool 的链 ID（按首次出现的顺序）"""
        return list(dict.fromkeys(prize_pool.chain_id for prize_pool in self.prize_pools))

    def get_prize_pool(self, chain_id: int, address: str) -> Optional[PrizePool]:
        """按 (chain_id, address) 查找 Prize Pool"""
        for prize_pool in self.prize_pools:
            if prize_pool.chain_id == chain_id and prize_pool.address.lower() == address.lower():
                return prize_pool
        return None

    async def get_users_prize_pool_balances(self, address: str) -> List[PrizePoolBalances]:
        """
        获取用户在所有 Prize Pool 中的 Token / Ticket 余额

        Args:
            address: 钱包地址

        Returns:
            每个 Prize Pool 一项，顺序与 prize_pools 一致
        """
        balances = await asyncio.gather(
            *(prize_pool.get_user_balances(address) for prize_pool in self.prize_pools)
        )
        return [
            PrizePoolBalances(
                chain_id=prize_pool.chain_id,
                address=prize_pool.address,
                balances=prize_pool_balances,
            )
            for prize_pool, prize_pool_balances in zip(self.prize_pools, balances)
        ]

    def __repr__(self) -> str:
        return (
            f"LinkedPrizePool(name={self.contract_list.name!r}, "
            f"prize_pools={len(self.prize_pools)}, chain_ids={self.chain_ids})"
        )


async def fetch_prize_pool_addresses(
    chain_id: int,
    client: Optional[Web3Client],
    prize_pool_contracts: Sequence[ContractDescriptor]
) -> Dict[str, PrizePoolAddresses]:
    """
    用一次 multicall 读取某条链上所有 Prize Pool 的 Token / Ticket 地址

    Args:
        chain_id: 链 ID
        client: 该链的 Web3 客户端
        prize_pool_contracts: 该链上的 Prize Pool 主合约

    Returns:
        {小写的 Prize Pool 地址: PrizePoolAddresses}

    Raises:
        ConstructionError: 缺少该链的客户端
        NetworkMismatchError: 客户端不在该链上
        ResolutionError: multicall 失败（整批失败）
    """
    error_prefix = "LinkedPrizePool [fetch_prize_pool_addresses] | "
    if client is None:
        raise ConstructionError(f"{error_prefix}No client for chain {chain_id}")
    await validate_client_network(error_prefix, client, chain_id)

    prize_pools = {contract.address.lower(): contract for contract in prize_pool_contracts}
    requests: List[CallRequest] = []
    for key, contract in prize_pools.items():
        abi = contract.abi or PRIZE_POOL_ABI
        requests.append(CallRequest(key=(key, "getToken"), address=contract.address, abi=abi, method="getToken"))
        requests.append(CallRequest(key=(key, "getTicket"), address=contract.address, abi=abi, method="getTicket"))

    try:
        result = await client.batch_call(requests)
    except ChainClientError as e:
        raise ResolutionError(f"{error_prefix}{e}") from e

    return {
        key: PrizePoolAddresses(token=result[(key, "getToken")], ticket=result[(key, "getTicket")])
        for key in prize_pools
    }


def extend_contracts_with_child_contracts(
    contracts: Iterable[ContractDescriptor],
    addresses_by_chain_id: Mapping[int, Mapping[str, PrizePoolAddresses]]
) -> List[ContractDescriptor]:
    """
    为链上查到、但合约列表中没有的 Token / Ticket 补充合约描述

    按 (chain_id, address) 去重，已存在的合约不会重复添加。
    """
    updated = list(contracts)
    known = set(index_contracts(updated))

    for chain_id, addresses_by_prize_pool in addresses_by_chain_id.items():
        for addresses in addresses_by_prize_pool.values():
            for address, contract_type, abi in (
                (addresses.token, ContractType.TOKEN, ERC20_ABI),
                (addresses.ticket, ContractType.TICKET, TICKET_ABI),
            ):
                key = (chain_id, address.lower())
                if key in known:
                    continue
                known.add(key)
                updated.append(create_contract_descriptor(chain_id, address, contract_type, abi))

    return updated


async def initialize_linked_prize_pool(
    providers: Mapping[int, Web3Client],
    contract_list: ContractList
) -> LinkedPrizePool:
    """
    从一个不含 children 的合约列表创建 LinkedPrizePool

    如果合约列表已经声明了 children 并包含 Token / Ticket 合约，
    可以直接使用 LinkedPrizePool(providers, contract_list)，跳过链上查询。

    Args:
        providers: {chain_id: Web3Client}
        contract_list: 合约列表

    Returns:
        LinkedPrizePool；查询失败的链上的 Prize Pool 不包含在内
    """
    contracts = list(contract_list.contracts)
    prize_pool_contracts_by_chain_id = sort_contracts_by_chain_id(get_prize_pool_contracts(contracts))
    logger.info(
        "Initializing linked prize pool %r on chain(s) %s",
        contract_list.name, list(prize_pool_contracts_by_chain_id)
    )

    results = await gather_settled({
        chain_id: fetch_prize_pool_addresses(chain_id, providers.get(chain_id), prize_pool_contracts)
        for chain_id, prize_pool_contracts in prize_pool_contracts_by_chain_id.items()
    })
    fulfilled, rejected = partition_settled(results)

    for failure in rejected:
        logger.error(
            "Fetching prize pool addresses on chain %s failed: %s", failure.key, failure.error
        )

    addresses_by_chain_id: PrizePoolAddressesByChainId = {
        result.key: result.value for result in fulfilled
    }

    # 失败链上的合约全部排除
    failed_chain_ids = {failure.key for failure in rejected}
    contracts = [contract for contract in contracts if contract.chain_id not in failed_chain_ids]

    contracts = extend_contracts_with_children(contracts, addresses_by_chain_id)
    contracts = extend_contracts_with_child_contracts(contracts, addresses_by_chain_id)

    linked_prize_pool = LinkedPrizePool(providers, contract_list.with_contracts(contracts))
    logger.info("Initialized %r", linked_prize_pool)
    return linked_prize_pool
