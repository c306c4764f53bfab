"""
合约读取器
Prize Pool 子合约（Token / Ticket）的只读句柄
"""

from typing import Any, Dict, List

from ..errors import ChainClientError, ResolutionError
from ..models import ContractDescriptor, TokenData
from .web3_client import CallRequest, Web3Client


# 标准 ERC20 ABI（只包含需要的函数）
ERC20_ABI: List[Dict[str, Any]] = [
    {
        "constant": True,
        "inputs": [],
        "name": "name",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"}
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function"
    }
]

# Ticket = ERC20 + TWAB 历史余额 + 委托
TICKET_ABI: List[Dict[str, Any]] = ERC20_ABI + [
    {
        "inputs": [
            {"name": "user", "type": "address"},
            {"name": "timestamp", "type": "uint64"}
        ],
        "name": "getBalanceAt",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "timestamp", "type": "uint64"}],
        "name": "getTotalSupplyAt",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "user", "type": "address"}],
        "name": "delegateOf",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    }
]


class ContractReader:
    """ERC20 合约读取器"""

    def __init__(self, client: Web3Client, descriptor: ContractDescriptor):
        """
        初始化合约读取器

        Args:
            client: 合约所在链的 Web3 客户端
            descriptor: 合约描述
        """
        self.client = client
        self.descriptor = descriptor

    @property
    def address(self) -> str:
        return self.descriptor.address

    @property
    def chain_id(self) -> int:
        return self.descriptor.chain_id

    @property
    def abi(self) -> List[Dict[str, Any]]:
        return self.descriptor.abi

    async def call(self, method: str, *args: Any) -> Any:
        """
        调用一次只读函数

        Raises:
            ResolutionError: 底层读取失败
        """
        try:
            return await self.client.call(self.address, self.abi, method, args)
        except ChainClientError as e:
            raise ResolutionError(f"{type(self).__name__} [{method}] | {e}") from e

    async def get_balance(self, address: str) -> int:
        """获取地址的代币余额（原始值）"""
        return await self.call("balanceOf", address)

    async def get_allowance(self, owner: str, spender: str) -> int:
        """获取 owner 授权给 spender 的额度"""
        return await self.call("allowance", owner, spender)

    async def get_total_supply(self) -> int:
        """获取代币总供应量（原始值，未除以 decimals）"""
        return await self.call("totalSupply")

    async def get_token_data(self) -> TokenData:
        """获取 name / symbol / decimals（一次 multicall）"""
        requests = [
            CallRequest(key=method, address=self.address, abi=self.abi, method=method)
            for method in ("name", "symbol", "decimals")
        ]
        try:
            result = await self.client.batch_call(requests)
        except ChainClientError as e:
            raise ResolutionError(f"{type(self).__name__} [get_token_data] | {e}") from e

        return TokenData(
            address=self.address,
            name=result["name"],
            symbol=result["symbol"],
            decimals=result["decimals"],
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(type={self.descriptor.type.value}, "
            f"chain_id={self.chain_id}, address={self.address})"
        )


class TicketReader(ContractReader):
    """Ticket 合约读取器，支持 TWAB 历史余额查询"""

    async def get_balance_at(self, address: str, timestamp: int) -> int:
        """
        获取地址在某个时间点的 TWAB 余额

        Args:
            address: 钱包地址
            timestamp: Unix 时间戳（秒）
        """
        return await self.call("getBalanceAt", address, timestamp)

    async def get_total_supply_at(self, timestamp: int) -> int:
        """获取某个时间点的 TWAB 总供应量"""
        return await self.call("getTotalSupplyAt", timestamp)

    async def delegate_of(self, address: str) -> str:
        """获取地址委托的目标地址"""
        return await self.call("delegateOf", address)
