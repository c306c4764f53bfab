"""
错误类型

所有读取错误都继承自 PrizePoolClientError:
- InvalidAddressError: 地址格式错误（本地校验，不访问网络）
- NetworkMismatchError: 客户端所在网络与 Prize Pool 声明的网络不一致
- ResolutionError: 链上读取失败（网络错误 / revert / 解码错误）
- ConstructionError: 无法构建某个 Prize Pool（例如缺少该网络的客户端）
"""

from typing import Optional


class PrizePoolClientError(Exception):
    """客户端错误基类"""
    pass


class ChainClientError(PrizePoolClientError):
    """链客户端（RPC / multicall）错误"""
    pass


class InvalidAddressError(PrizePoolClientError):
    """地址格式错误"""

    def __init__(self, error_prefix: str, address: object):
        self.address = address
        super().__init__(f"{error_prefix}Invalid address: {address!r}")


class NetworkMismatchError(PrizePoolClientError):
    """网络不一致"""

    def __init__(self, error_prefix: str, expected: int, actual: Optional[int]):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{error_prefix}Client is connected to chain {actual}, expected chain {expected}"
        )


class ResolutionError(PrizePoolClientError):
    """链上读取失败"""
    pass


class ConstructionError(PrizePoolClientError):
    """Prize Pool 构建失败"""
    pass
