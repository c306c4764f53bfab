"""
数据模型

- ContractType / ContractDescriptor / ContractList: 合约列表（只读，构建后不再修改）
- TokenData / PrizePoolTokenBalances / DepositAllowance ...: 返回给调用方的结果模型
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from pydantic import BaseModel


class ContractType(str, Enum):
    """合约类型"""
    YIELD_SOURCE_PRIZE_POOL = "YieldSourcePrizePool"
    PRIZE_POOL = "PrizePool"
    TICKET = "Ticket"
    TOKEN = "Token"
    PRIZE_DISTRIBUTOR = "PrizeDistributor"
    DRAW_BEACON = "DrawBeacon"
    DRAW_BUFFER = "DrawBuffer"
    PRIZE_DISTRIBUTION_BUFFER = "PrizeDistributionBuffer"
    PRIZE_TIER_HISTORY = "PrizeTierHistory"
    DRAW_CALCULATOR = "DrawCalculator"
    PRIZE_FLUSH = "PrizeFlush"
    RESERVE = "Reserve"
    PRIZE_SPLIT_STRATEGY = "PrizeSplitStrategy"


# 代表一个 Prize Pool 部署的主合约类型
PRIMARY_POOL_TYPES = frozenset({
    ContractType.YIELD_SOURCE_PRIZE_POOL,
    ContractType.PRIZE_POOL,
})


@dataclass(frozen=True)
class ContractVersion:
    major: int = 1
    minor: int = 0
    patch: int = 0


@dataclass(frozen=True)
class ChildReference:
    """指向另一个合约描述的引用 (chain_id, address)"""
    chain_id: int
    address: str

    @property
    def key(self) -> Tuple[int, str]:
        return self.chain_id, self.address.lower()


@dataclass(frozen=True)
class ContractDescriptor:
    """
    合约描述

    同一 chain_id 下 address 唯一。children 记录该合约关联的子合约
    （Token / Ticket），可以来自输入的合约列表，也可以在组装 Linked Prize Pool
    时由链上查询结果补充。
    """
    chain_id: int
    address: str
    type: ContractType
    abi: List[Dict[str, Any]] = field(default_factory=list, compare=False, repr=False)
    children: Tuple[ChildReference, ...] = ()
    version: ContractVersion = ContractVersion()
    tags: Tuple[str, ...] = ()

    @property
    def key(self) -> Tuple[int, str]:
        """去重 / 查找用的键，地址不区分大小写"""
        return self.chain_id, self.address.lower()

    @property
    def is_prize_pool(self) -> bool:
        return self.type in PRIMARY_POOL_TYPES

    def with_children(self, children: Iterable[ChildReference]) -> "ContractDescriptor":
        """返回带有新 children 的副本"""
        return replace(self, children=tuple(children))

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ContractDescriptor":
        """
        从合约列表 JSON 构建

        Args:
            raw: {"chainId", "address", "type", "abi", "version"?, "tags"?, "extensions"?}
        """
        version = raw.get("version") or {}
        extensions = raw.get("extensions") or {}
        children = tuple(
            ChildReference(chain_id=int(child["chainId"]), address=child["address"])
            for child in extensions.get("children") or []
        )
        return cls(
            chain_id=int(raw["chainId"]),
            address=raw["address"],
            type=ContractType(raw["type"]),
            abi=list(raw.get("abi") or []),
            children=children,
            version=ContractVersion(
                major=version.get("major", 1),
                minor=version.get("minor", 0),
                patch=version.get("patch", 0),
            ),
            tags=tuple(raw.get("tags") or []),
        )


def create_contract_descriptor(
    chain_id: int,
    address: str,
    contract_type: ContractType,
    abi: List[Dict[str, Any]],
) -> ContractDescriptor:
    """为链上发现的合约创建描述（版本 1.0.0，无 tags / children）"""
    return ContractDescriptor(
        chain_id=chain_id,
        address=address,
        type=contract_type,
        abi=list(abi),
    )


@dataclass(frozen=True)
class ContractList:
    """合约列表（Contract Registry）"""
    name: str
    contracts: Tuple[ContractDescriptor, ...] = ()
    version: ContractVersion = ContractVersion()
    tags: Tuple[str, ...] = ()

    def with_contracts(self, contracts: Iterable[ContractDescriptor]) -> "ContractList":
        return replace(self, contracts=tuple(contracts))

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ContractList":
        version = raw.get("version") or {}
        return cls(
            name=raw.get("name", ""),
            contracts=tuple(ContractDescriptor.from_dict(c) for c in raw.get("contracts") or []),
            version=ContractVersion(
                major=version.get("major", 1),
                minor=version.get("minor", 0),
                patch=version.get("patch", 0),
            ),
            tags=tuple(raw.get("tags") or []),
        )


# ============ 结果模型 ============

class TokenData(BaseModel):
    """代币基础信息"""
    address: str
    name: str
    symbol: str
    decimals: int


class PrizePoolTokenBalances(BaseModel):
    """用户在 Prize Pool 中的余额（原始值，未除以 decimals）"""
    token: int
    ticket: int


class DepositAllowance(BaseModel):
    """用户对 Prize Pool 的存款授权额度"""
    allowance_unformatted: int
    is_approved: bool


class PrizePoolBalances(BaseModel):
    """Linked Prize Pool 中单个 Prize Pool 的用户余额"""
    chain_id: int
    address: str
    balances: PrizePoolTokenBalances


class PrizePoolAddresses(BaseModel):
    """链上查询得到的子合约地址"""
    token: str
    ticket: str
