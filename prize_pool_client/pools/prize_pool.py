"""
Prize Pool
单个 Prize Pool 部署的只读接口

Token / Ticket 子合约在第一次使用时通过链上读取获得地址，之后一直缓存；
同一时刻只会有一次解析请求，并发的调用方共享同一个结果。
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type

from ..blockchain.contract_reader import ERC20_ABI, TICKET_ABI, ContractReader, TicketReader
from ..blockchain.web3_client import Web3Client
from ..errors import ConstructionError
from ..models import (
    ContractDescriptor,
    ContractList,
    ContractType,
    DepositAllowance,
    PrizePoolTokenBalances,
    TokenData,
    create_contract_descriptor,
)
from ..utils.contract_list import index_contracts, sort_contracts_by_contract_type_and_children
from ..utils.validation import validate_address, validate_client_network

logger = logging.getLogger(__name__)


# Prize Pool 合约 ABI（只包含子合约地址查询）
PRIZE_POOL_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [],
        "name": "getToken",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "getTicket",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    }
]


def _retrieve_exception(task: "asyncio.Future[Any]") -> None:
    # 所有调用方都已取消时，仍然取走异常，避免 "Task exception was never retrieved"
    if not task.cancelled():
        task.exception()


@dataclass
class _ChildContractSlot:
    """子合约缓存：contract 一旦写入就不再变化，pending 是进行中的解析任务"""
    getter: str
    contract_type: ContractType
    default_abi: List[Dict[str, Any]]
    reader_class: Type[ContractReader]
    contract: Optional[ContractReader] = None
    pending: Optional["asyncio.Future[ContractReader]"] = None


class PrizePool:
    """
    Prize Pool

    提供 Prize Pool 部署中各合约的只读查询。

    使用示例:
        pool = PrizePool(client, prize_pool_metadata, contracts)
        balances = await pool.get_user_balances("0x...")
    """

    def __init__(
        self,
        client: Optional[Web3Client],
        prize_pool_metadata: ContractDescriptor,
        contracts: Sequence[ContractDescriptor] = ()
    ):
        """
        Args:
            client: Prize Pool 所在链的 Web3 客户端
            prize_pool_metadata: Prize Pool 主合约描述
            contracts: 合约列表，用于查找已声明的 Token / Ticket 子合约

        Raises:
            ConstructionError: 不是 Prize Pool 合约，或缺少该链的客户端
        """
        error_prefix = "PrizePool [__init__] | "
        if not prize_pool_metadata.is_prize_pool:
            raise ConstructionError(
                f"{error_prefix}{prize_pool_metadata.address} is a "
                f"{prize_pool_metadata.type.value}, not a prize pool"
            )
        if client is None:
            raise ConstructionError(
                f"{error_prefix}No client for chain {prize_pool_metadata.chain_id}"
            )

        if not prize_pool_metadata.abi:
            prize_pool_metadata = replace(prize_pool_metadata, abi=PRIZE_POOL_ABI)

        self.client = client
        self.prize_pool_metadata = prize_pool_metadata
        self.prize_pool_contract = ContractReader(client, prize_pool_metadata)

        self._token = _ChildContractSlot("getToken", ContractType.TOKEN, ERC20_ABI, ContractReader)
        self._ticket = _ChildContractSlot("getTicket", ContractType.TICKET, TICKET_ABI, TicketReader)
        self._seed_child_contracts(contracts)

    @property
    def chain_id(self) -> int:
        return self.prize_pool_metadata.chain_id

    @property
    def address(self) -> str:
        return self.prize_pool_metadata.address

    @property
    def token_contract(self) -> Optional[ContractReader]:
        """已缓存的 Token 合约（未解析时为 None）"""
        return self._token.contract

    @property
    def ticket_contract(self) -> Optional[TicketReader]:
        """已缓存的 Ticket 合约（未解析时为 None）"""
        return self._ticket.contract  # type: ignore[return-value]

    def _seed_child_contracts(self, contracts: Sequence[ContractDescriptor]) -> None:
        index = index_contracts(contracts)
        for child in self.prize_pool_metadata.children:
            metadata = index.get(child.key)
            if metadata is None or metadata.chain_id != self.chain_id:
                continue

            if metadata.type == ContractType.TOKEN:
                slot = self._token
            elif metadata.type == ContractType.TICKET:
                slot = self._ticket
            else:
                continue

            if slot.contract is None:
                if not metadata.abi:
                    metadata = replace(metadata, abi=slot.default_abi)
                slot.contract = slot.reader_class(self.client, metadata)

    # ============ 子合约解析 ============

    async def get_token_contract(self) -> ContractReader:
        """获取 Token 合约（首次调用时从链上读取地址）"""
        return await self._get_child_contract(self._token)

    async def get_ticket_contract(self) -> TicketReader:
        """获取 Ticket 合约（首次调用时从链上读取地址）"""
        return await self._get_child_contract(self._ticket)  # type: ignore[return-value]

    async def _get_child_contract(self, slot: _ChildContractSlot) -> ContractReader:
        if slot.contract is not None:
            return slot.contract

        if slot.pending is None:
            slot.pending = asyncio.ensure_future(self._resolve_child_contract(slot))
            slot.pending.add_done_callback(_retrieve_exception)

        # shield: 调用方被取消时，已发出的读取仍然完成并写入缓存
        return await asyncio.shield(slot.pending)

    async def _resolve_child_contract(self, slot: _ChildContractSlot) -> ContractReader:
        try:
            address = await self.prize_pool_contract.call(slot.getter)
            metadata = create_contract_descriptor(
                self.chain_id, address, slot.contract_type, slot.default_abi
            )
            slot.contract = slot.reader_class(self.client, metadata)
            logger.debug(
                "Resolved %s %s for prize pool %s on chain %s",
                slot.contract_type.value, address, self.address, self.chain_id
            )
            return slot.contract
        finally:
            # 失败时不写缓存，下一次调用重新解析
            slot.pending = None

    async def _validate(self, error_prefix: str, *addresses: Any) -> None:
        for address in addresses:
            validate_address(error_prefix, address)
        await validate_client_network(error_prefix, self.client, self.chain_id)

    # ============ 读取函数 ============

    async def get_user_balances(self, address: str) -> PrizePoolTokenBalances:
        """
        获取用户的 Token 和 Ticket 余额

        Args:
            address: 钱包地址

        Returns:
            PrizePoolTokenBalances（原始值）
        """
        await self._validate("PrizePool [get_user_balances] | ", address)
        token_contract, ticket_contract = await asyncio.gather(
            self.get_token_contract(), self.get_ticket_contract()
        )
        token, ticket = await asyncio.gather(
            token_contract.get_balance(address), ticket_contract.get_balance(address)
        )
        return PrizePoolTokenBalances(token=token, ticket=ticket)

    async def get_user_token_balance(self, address: str) -> int:
        """获取用户的 Token 余额"""
        await self._validate("PrizePool [get_user_token_balance] | ", address)
        token_contract = await self.get_token_contract()
        return await token_contract.get_balance(address)

    async def get_user_ticket_balance(self, address: str) -> int:
        """获取用户的 Ticket 余额"""
        await self._validate("PrizePool [get_user_ticket_balance] | ", address)
        ticket_contract = await self.get_ticket_contract()
        return await ticket_contract.get_balance(address)

    async def get_user_ticket_balance_at(self, address: str, timestamp: int) -> int:
        """
        获取用户在某个时间点的 Ticket TWAB

        Args:
            address: 钱包地址
            timestamp: Unix 时间戳（秒）
        """
        await self._validate("PrizePool [get_user_ticket_balance_at] | ", address)
        ticket_contract = await self.get_ticket_contract()
        return await ticket_contract.get_balance_at(address, timestamp)

    async def get_total_supply_at(self, timestamp: int) -> int:
        """获取 Ticket 在某个时间点的 TWAB 总供应量"""
        await self._validate("PrizePool [get_total_supply_at] | ")
        ticket_contract = await self.get_ticket_contract()
        return await ticket_contract.get_total_supply_at(timestamp)

    async def get_ticket_total_supply(self) -> int:
        """获取 Ticket 当前总供应量"""
        await self._validate("PrizePool [get_ticket_total_supply] | ")
        ticket_contract = await self.get_ticket_contract()
        return await ticket_contract.get_total_supply()

    async def get_user_delegate(self, address: str) -> str:
        """获取用户 Ticket 委托的地址"""
        await self._validate("PrizePool [get_user_delegate] | ", address)
        ticket_contract = await self.get_ticket_contract()
        return await ticket_contract.delegate_of(address)

    async def get_user_deposit_allowance(self, address: str) -> DepositAllowance:
        """
        获取用户授权给 Prize Pool 的存款额度

        Returns:
            DepositAllowance，额度大于 0 时 is_approved 为 True
        """
        await self._validate("PrizePool [get_user_deposit_allowance] | ", address)
        token_contract = await self.get_token_contract()
        allowance = await token_contract.get_allowance(address, self.address)
        return DepositAllowance(allowance_unformatted=allowance, is_approved=allowance > 0)

    async def get_token_metadata(self) -> TokenData:
        """获取 Token 的 name / symbol / decimals"""
        await self._validate("PrizePool [get_token_metadata] | ")
        token_contract = await self.get_token_contract()
        return await token_contract.get_token_data()

    async def get_ticket_metadata(self) -> TokenData:
        """获取 Ticket 的 name / symbol / decimals"""
        await self._validate("PrizePool [get_ticket_metadata] | ")
        ticket_contract = await self.get_ticket_contract()
        return await ticket_contract.get_token_data()

    def __repr__(self) -> str:
        return f"PrizePool(chain_id={self.chain_id}, address={self.address})"


def create_prize_pools(
    providers: Mapping[int, Web3Client],
    contracts: Sequence[ContractDescriptor]
) -> List[PrizePool]:
    """
    根据合约列表批量创建 Prize Pool

    每个主合约（按 (chain_id, address) 去重）创建一个 PrizePool，
    已声明的 Token / Ticket 子合约直接写入缓存。某个 Prize Pool 创建失败
    只记录日志并跳过，不影响其他 Prize Pool。

    Args:
        providers: {chain_id: Web3Client}
        contracts: 完整合约列表

    Returns:
        成功创建的 PrizePool 列表（按主合约首次出现的顺序）
    """
    prize_pools: List[PrizePool] = []
    for group in sort_contracts_by_contract_type_and_children(contracts):
        prize_pool_metadata = group[0]
        try:
            prize_pools.append(
                PrizePool(providers.get(prize_pool_metadata.chain_id), prize_pool_metadata, group)
            )
        except ConstructionError as e:
            logger.error(
                "Skipping prize pool %s on chain %s: %s",
                prize_pool_metadata.address, prize_pool_metadata.chain_id, e
            )
    return prize_pools


def initialize_prize_pools(
    contract_list: ContractList,
    providers: Mapping[int, Web3Client]
) -> List[PrizePool]:
    """从 ContractList 创建所有 Prize Pool"""
    return create_prize_pools(providers, contract_list.contracts)
