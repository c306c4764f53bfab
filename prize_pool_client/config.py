"""
配置

RPC URL 等配置从环境变量读取（支持 .env 文件）:
- 已知网络使用具名变量，例如 ETHEREUM_RPC_URL / POLYGON_RPC_URL
- 其他网络使用 RPC_URL_<chain_id>
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional

from dotenv import load_dotenv

# Multicall3 在所有主流 EVM 链上的部署地址
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"

CHAIN_RPC_ENV_KEYS: Dict[int, str] = {
    1: "ETHEREUM_RPC_URL",
    4: "RINKEBY_RPC_URL",
    10: "OPTIMISM_RPC_URL",
    137: "POLYGON_RPC_URL",
    80001: "MUMBAI_RPC_URL",
    43114: "AVALANCHE_RPC_URL",
    43113: "FUJI_RPC_URL",
}

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def rpc_env_key(chain_id: int) -> str:
    """返回某条链的 RPC URL 环境变量名"""
    return CHAIN_RPC_ENV_KEYS.get(chain_id, f"RPC_URL_{chain_id}")


@dataclass(frozen=True)
class Settings:
    rpc_urls: Dict[int, str] = field(default_factory=dict)
    multicall_address: str = MULTICALL3_ADDRESS
    rpc_timeout: int = 30
    log_level: str = "INFO"

    def get_rpc_url(self, chain_id: int) -> Optional[str]:
        return self.rpc_urls.get(chain_id)


def _collect_rpc_urls() -> Dict[int, str]:
    urls: Dict[int, str] = {}
    for chain_id, env_key in CHAIN_RPC_ENV_KEYS.items():
        value = os.getenv(env_key, "").strip()
        if value:
            urls[chain_id] = value

    # RPC_URL_<chain_id> 覆盖未命名的网络
    for env_key, value in os.environ.items():
        if not env_key.startswith("RPC_URL_"):
            continue
        suffix = env_key[len("RPC_URL_"):]
        if suffix.isdigit() and value.strip():
            urls.setdefault(int(suffix), value.strip())
    return urls


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()

    try:
        rpc_timeout = int(os.getenv("RPC_TIMEOUT", "30"))
    except ValueError:
        rpc_timeout = 30

    return Settings(
        rpc_urls=_collect_rpc_urls(),
        multicall_address=os.getenv("MULTICALL_ADDRESS", MULTICALL3_ADDRESS),
        rpc_timeout=rpc_timeout,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: Optional[str] = None) -> None:
    """给脚本使用的日志配置，库本身不会在导入时配置日志"""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format=LOG_FORMAT,
    )
