"""
测试公共 fixture
"""

import asyncio
from typing import Any, Dict, Optional, Tuple
from unittest.mock import AsyncMock, Mock

import pytest

from prize_pool_client.blockchain.web3_client import Web3Client
from prize_pool_client.models import ContractDescriptor, ContractType
from prize_pool_client.pools.prize_pool import PRIZE_POOL_ABI

POOL = "0x1111111111111111111111111111111111111111"
POOL_2 = "0x2222222222222222222222222222222222222222"
TOKEN = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
TICKET = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
USER = "0x3333333333333333333333333333333333333333"


def _next_response(responses: Dict[Tuple[str, str], Any], address: str, method: str) -> Any:
    value = responses[(address.lower(), method)]
    # 列表表示依次返回的结果
    if isinstance(value, list):
        value = value.pop(0)
    if isinstance(value, BaseException):
        raise value
    return value


@pytest.fixture
def make_client():
    """
    创建模拟的 Web3 客户端

    responses: {(小写地址, 函数名): 返回值 | 异常 | [依次返回的结果]}
    """

    def factory(
        chain_id: int = 1,
        responses: Optional[Dict[Tuple[str, str], Any]] = None,
        remote_chain_id: Optional[int] = None,
        batch_error: Optional[BaseException] = None,
    ) -> Mock:
        table = responses if responses is not None else {}

        client = Mock(spec=Web3Client)
        client.chain_id = chain_id
        client.get_chain_id = AsyncMock(
            return_value=remote_chain_id if remote_chain_id is not None else chain_id
        )

        async def call(address, abi, method, args=()):
            await asyncio.sleep(0)
            return _next_response(table, address, method)

        async def batch_call(requests):
            await asyncio.sleep(0)
            if batch_error is not None:
                raise batch_error
            return {
                request.key: _next_response(table, request.address, request.method)
                for request in requests
            }

        client.call = AsyncMock(side_effect=call)
        client.batch_call = AsyncMock(side_effect=batch_call)
        return client

    return factory


def calls_to(client: Mock, method: str) -> list:
    """返回对某个函数的所有 call() 调用"""
    return [c for c in client.call.await_args_list if c.args[2] == method]


def prize_pool_descriptor(
    chain_id: int = 1,
    address: str = POOL,
    children=(),
    contract_type: ContractType = ContractType.YIELD_SOURCE_PRIZE_POOL,
) -> ContractDescriptor:
    return ContractDescriptor(
        chain_id=chain_id,
        address=address,
        type=contract_type,
        abi=PRIZE_POOL_ABI,
        children=tuple(children),
    )
