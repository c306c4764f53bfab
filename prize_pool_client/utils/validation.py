"""
参数校验
在发起任何合约读取之前执行
"""

from typing import Any

from web3 import Web3

from ..errors import ChainClientError, InvalidAddressError, NetworkMismatchError, ResolutionError


def validate_address(error_prefix: str, address: Any) -> None:
    """
    校验地址格式（本地校验，不访问网络）

    Raises:
        InvalidAddressError: 不是合法的 EVM 地址
    """
    if not isinstance(address, str) or not Web3.is_address(address):
        raise InvalidAddressError(error_prefix, address)


async def validate_client_network(error_prefix: str, client: Any, chain_id: int) -> None:
    """
    校验客户端所在网络与期望的链 ID 一致

    先比较客户端绑定的 chain_id，再比较节点返回的链 ID（客户端会缓存）。

    Raises:
        NetworkMismatchError: 网络不一致
        ResolutionError: 无法获取节点的链 ID
    """
    if client.chain_id != chain_id:
        raise NetworkMismatchError(error_prefix, chain_id, client.chain_id)

    try:
        actual = await client.get_chain_id()
    except ChainClientError as e:
        raise ResolutionError(f"{error_prefix}{e}") from e

    if actual != chain_id:
        raise NetworkMismatchError(error_prefix, chain_id, actual)
