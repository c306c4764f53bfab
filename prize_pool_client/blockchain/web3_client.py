"""
Web3 客户端封装
每个客户端绑定一条链，提供单次合约读取和 multicall 批量读取
"""

import logging
from typing import Any, Dict, Hashable, List, NamedTuple, Optional, Sequence, Tuple

from eth_abi import decode
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from ..config import get_settings, rpc_env_key
from ..errors import ChainClientError

logger = logging.getLogger(__name__)


# Multicall3 ABI（只包含 aggregate3）
MULTICALL3_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"internalType": "address", "name": "target", "type": "address"},
                    {"internalType": "bool", "name": "allowFailure", "type": "bool"},
                    {"internalType": "bytes", "name": "callData", "type": "bytes"}
                ],
                "internalType": "struct Multicall3.Call3[]",
                "name": "calls",
                "type": "tuple[]"
            }
        ],
        "name": "aggregate3",
        "outputs": [
            {
                "components": [
                    {"internalType": "bool", "name": "success", "type": "bool"},
                    {"internalType": "bytes", "name": "returnData", "type": "bytes"}
                ],
                "internalType": "struct Multicall3.Result[]",
                "name": "returnData",
                "type": "tuple[]"
            }
        ],
        "stateMutability": "view",
        "type": "function"
    }
]


class CallRequest(NamedTuple):
    """批量读取中的一次合约调用"""
    key: Hashable
    address: str
    abi: List[Dict[str, Any]]
    method: str
    args: Tuple[Any, ...] = ()


def _abi_type(param: Dict[str, Any]) -> str:
    abi_type = param["type"]
    if abi_type.startswith("tuple"):
        inner = ",".join(_abi_type(c) for c in param.get("components", []))
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


def _find_function_abi(abi: List[Dict[str, Any]], method: str, arg_count: int) -> Dict[str, Any]:
    for entry in abi:
        if (
            entry.get("type", "function") == "function"
            and entry.get("name") == method
            and len(entry.get("inputs", [])) == arg_count
        ):
            return entry
    raise ChainClientError(f"Function {method} with {arg_count} argument(s) not found in ABI")


class Web3Client:
    """异步 Web3 客户端，绑定到单个网络"""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        chain_id: int = 1,
        multicall_address: Optional[str] = None,
        timeout: Optional[int] = None
    ):
        """
        初始化 Web3 客户端（不会发起网络请求）

        Args:
            rpc_url: RPC URL，如果不提供则从环境变量读取
            chain_id: 客户端绑定的链 ID
            multicall_address: Multicall3 合约地址，默认读取配置
            timeout: HTTP 请求超时（秒）
        """
        settings = get_settings()

        # 如果没有提供 RPC URL，从环境变量读取
        if not rpc_url:
            rpc_url = settings.get_rpc_url(chain_id)
            if not rpc_url:
                raise ValueError(
                    f"RPC URL not found in .env for chain {chain_id} ({rpc_env_key(chain_id)})"
                )

        self.w3 = AsyncWeb3(
            AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": timeout or settings.rpc_timeout}
            )
        )

        self.chain_id = chain_id
        self.rpc_url = rpc_url
        self.multicall_address = Web3.to_checksum_address(
            multicall_address or settings.multicall_address
        )
        self._remote_chain_id: Optional[int] = None

    async def is_connected(self) -> bool:
        """检查是否已连接到区块链"""
        try:
            return await self.w3.is_connected()
        except Exception:
            return False

    async def get_chain_id(self) -> int:
        """获取节点实际所在的链 ID（只请求一次）"""
        if self._remote_chain_id is None:
            try:
                self._remote_chain_id = await self.w3.eth.chain_id
            except Exception as e:
                raise ChainClientError(
                    f"Failed to fetch chain id from chain {self.chain_id} RPC: {e}"
                ) from e
        return self._remote_chain_id

    def to_checksum_address(self, address: str) -> str:
        return Web3.to_checksum_address(address)

    def _contract(self, address: str, abi: List[Dict[str, Any]]):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def _normalize_args(
        self,
        abi: List[Dict[str, Any]],
        method: str,
        args: Sequence[Any]
    ) -> List[Any]:
        """address 类型的参数统一转为 checksum 格式（web3 只接受 checksum 地址）"""
        fn_abi = _find_function_abi(abi, method, len(args))
        return [
            self.to_checksum_address(arg) if param["type"] == "address" else arg
            for param, arg in zip(fn_abi.get("inputs", []), args)
        ]

    async def call(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        method: str,
        args: Sequence[Any] = ()
    ) -> Any:
        """
        读取合约（eth_call）

        Args:
            address: 合约地址
            abi: 合约 ABI
            method: 函数名
            args: 函数参数

        Returns:
            解码后的返回值

        Raises:
            ChainClientError: 网络错误、revert 或解码错误
        """
        try:
            contract = self._contract(address, abi)
            args = self._normalize_args(abi, method, args)
            return await getattr(contract.functions, method)(*args).call()
        except Exception as e:
            raise ChainClientError(
                f"{method}() on {address} (chain {self.chain_id}) failed: {e}"
            ) from e

    async def batch_call(self, requests: Sequence[CallRequest]) -> Dict[Hashable, Any]:
        """
        通过 Multicall3 在一次 RPC 请求中执行多个读取

        任意一个调用失败都会导致整个批次失败（allowFailure=False）。

        Args:
            requests: 调用列表

        Returns:
            {request.key: 解码后的返回值}
        """
        if not requests:
            return {}

        try:
            calls = []
            for request in requests:
                contract = self._contract(request.address, request.abi)
                args = self._normalize_args(request.abi, request.method, request.args)
                call_data = contract.encode_abi(request.method, args=args)
                calls.append((contract.address, False, Web3.to_bytes(hexstr=call_data)))

            multicall = self.w3.eth.contract(address=self.multicall_address, abi=MULTICALL3_ABI)
            results = await multicall.functions.aggregate3(calls).call()
        except Exception as e:
            raise ChainClientError(
                f"Multicall of {len(requests)} call(s) on chain {self.chain_id} failed: {e}"
            ) from e

        decoded: Dict[Hashable, Any] = {}
        for request, (success, return_data) in zip(requests, results):
            if not success:
                raise ChainClientError(
                    f"{request.method}() on {request.address} reverted inside multicall"
                )
            fn_abi = _find_function_abi(request.abi, request.method, len(request.args))
            output_types = [_abi_type(o) for o in fn_abi.get("outputs", [])]
            try:
                values = decode(output_types, return_data)
            except Exception as e:
                raise ChainClientError(
                    f"Failed to decode {request.method}() result from {request.address}: {e}"
                ) from e

            # eth_abi 返回小写地址，统一转为 checksum 格式
            values = [
                Web3.to_checksum_address(v) if t == "address" else v
                for t, v in zip(output_types, values)
            ]
            decoded[request.key] = values[0] if len(values) == 1 else tuple(values)

        logger.debug("Multicall on chain %s returned %d result(s)", self.chain_id, len(decoded))
        return decoded

    async def close(self) -> None:
        """关闭底层 HTTP 会话"""
        provider = self.w3.provider
        if hasattr(provider, "disconnect"):
            await provider.disconnect()

    def __repr__(self) -> str:
        return f"Web3Client(chain_id={self.chain_id})"


def create_providers(chain_ids: Sequence[int]) -> Dict[int, Web3Client]:
    """
    按配置为多条链创建客户端

    没有配置 RPC URL 的链会被跳过（记录日志），这些链上的 Prize Pool
    会在构建时单独失败，不影响其他链。

    Args:
        chain_ids: 链 ID 列表

    Returns:
        {chain_id: Web3Client}
    """
    providers: Dict[int, Web3Client] = {}
    for chain_id in chain_ids:
        try:
            providers[chain_id] = Web3Client(chain_id=chain_id)
        except ValueError as e:
            logger.warning("Skipping chain %s: %s", chain_id, e)
    return providers
