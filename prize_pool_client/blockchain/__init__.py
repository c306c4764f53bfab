"""
区块链交互模块

包含:
- Web3Client: 异步 Web3 RPC 客户端（单次读取 + Multicall3 批量读取）
- ContractReader: ERC20 合约读取器
- TicketReader: Ticket 合约读取器（TWAB / 委托）
"""

from .web3_client import CallRequest, Web3Client, create_providers
from .contract_reader import ERC20_ABI, TICKET_ABI, ContractReader, TicketReader

__all__ = [
    "CallRequest",
    "Web3Client",
    "create_providers",
    "ContractReader",
    "TicketReader",
    "ERC20_ABI",
    "TICKET_ABI",
]
