# -*- coding: utf-8 -*-
"""
合约列表工具函数
对合约描述列表做查询、分组，返回新列表，不修改输入
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..models import (
    PRIMARY_POOL_TYPES,
    ChildReference,
    ContractDescriptor,
    ContractType,
    PrizePoolAddresses,
)

ContractKey = Tuple[int, str]


def get_contracts_by_type(
    contracts: Iterable[ContractDescriptor],
    contract_type: Union[ContractType, Iterable[ContractType]]
) -> List[ContractDescriptor]:
    """
    按类型过滤合约

    Args:
        contracts: 合约列表
        contract_type: 单个类型或类型集合

    Returns:
        匹配的合约（保持输入顺序）
    """
    if isinstance(contract_type, ContractType):
        types = {contract_type}
    else:
        types = set(contract_type)
    return [contract for contract in contracts if contract.type in types]


def get_prize_pool_contracts(contracts: Iterable[ContractDescriptor]) -> List[ContractDescriptor]:
    """过滤出所有 Prize Pool 主合约"""
    return get_contracts_by_type(contracts, PRIMARY_POOL_TYPES)


def sort_contracts_by_chain_id(
    contracts: Iterable[ContractDescriptor]
) -> Dict[int, List[ContractDescriptor]]:
    """按链 ID 分组，链的顺序为首次出现的顺序"""
    contracts_by_chain_id: Dict[int, List[ContractDescriptor]] = {}
    for contract in contracts:
        contracts_by_chain_id.setdefault(contract.chain_id, []).append(contract)
    return contracts_by_chain_id


def get_contract_list_chain_ids(contracts: Iterable[ContractDescriptor]) -> List[int]:
    """合约列表中出现的所有链 ID"""
    return list(sort_contracts_by_chain_id(contracts).keys())


def index_contracts(contracts: Iterable[ContractDescriptor]) -> Dict[ContractKey, ContractDescriptor]:
    """按 (chain_id, address) 建索引，重复时保留第一个"""
    index: Dict[ContractKey, ContractDescriptor] = {}
    for contract in contracts:
        index.setdefault(contract.key, contract)
    return index


def find_contract(
    contracts: Iterable[ContractDescriptor],
    chain_id: int,
    address: str
) -> Optional[ContractDescriptor]:
    """查找 (chain_id, address) 对应的合约，地址不区分大小写"""
    key = (chain_id, address.lower())
    for contract in contracts:
        if contract.key == key:
            return contract
    return None


def sort_contracts_by_contract_type_and_children(
    contracts: Sequence[ContractDescriptor],
    contract_type: Union[ContractType, Iterable[ContractType]] = PRIMARY_POOL_TYPES
) -> List[List[ContractDescriptor]]:
    """
    把每个主合约和它声明的子合约分为一组

    同一个 (chain_id, address) 的主合约只保留第一次出现的；
    找不到的子合约引用直接忽略。

    Args:
        contracts: 完整合约列表
        contract_type: 主合约类型

    Returns:
        [[主合约, 子合约...], ...]，按主合约首次出现的顺序
    """
    index = index_contracts(contracts)
    seen = set()
    groups: List[List[ContractDescriptor]] = []

    for contract in get_contracts_by_type(contracts, contract_type):
        if contract.key in seen:
            continue
        seen.add(contract.key)

        group = [contract]
        for child in contract.children:
            child_contract = index.get(child.key)
            if child_contract is not None and child_contract not in group:
                group.append(child_contract)
        groups.append(group)

    return groups


def extend_contracts_with_children(
    contracts: Iterable[ContractDescriptor],
    addresses_by_chain_id: Mapping[int, Mapping[str, PrizePoolAddresses]],
    contract_type: Union[ContractType, Iterable[ContractType]] = PRIMARY_POOL_TYPES
) -> List[ContractDescriptor]:
    """
    把链上查到的 Token / Ticket 地址记录为主合约的 children

    Args:
        contracts: 合约列表
        addresses_by_chain_id: {chain_id: {小写的主合约地址: PrizePoolAddresses}}
        contract_type: 需要扩展的主合约类型

    Returns:
        新的合约列表，未查到地址的合约原样保留
    """
    types = {contract_type} if isinstance(contract_type, ContractType) else set(contract_type)
    extended: List[ContractDescriptor] = []

    for contract in contracts:
        addresses = None
        if contract.type in types:
            addresses = addresses_by_chain_id.get(contract.chain_id, {}).get(contract.address.lower())

        if addresses is None:
            extended.append(contract)
            continue

        extended.append(contract.with_children([
            ChildReference(chain_id=contract.chain_id, address=addresses.token),
            ChildReference(chain_id=contract.chain_id, address=addresses.ticket),
        ]))

    return extended
