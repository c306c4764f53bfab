"""
LinkedPrizePool 测试
"""

import logging

import pytest

from conftest import POOL, POOL_2, TICKET, TOKEN, USER, calls_to, prize_pool_descriptor
from prize_pool_client.blockchain.contract_reader import ERC20_ABI, TICKET_ABI
from prize_pool_client.errors import (
    ChainClientError,
    ConstructionError,
    NetworkMismatchError,
    ResolutionError,
)
from prize_pool_client.models import (
    ChildReference,
    ContractList,
    ContractType,
    PrizePoolAddresses,
    create_contract_descriptor,
)
from prize_pool_client.pools.linked_prize_pool import (
    LinkedPrizePool,
    extend_contracts_with_child_contracts,
    fetch_prize_pool_addresses,
    initialize_linked_prize_pool,
)

TOKEN_2 = "0x" + "d" * 40
TICKET_2 = "0x" + "e" * 40


def pool_responses(pool=POOL, token=TOKEN, ticket=TICKET):
    return {
        (pool, "getToken"): token,
        (pool, "getTicket"): ticket,
        (token, "balanceOf"): 100,
        (ticket, "balanceOf"): 40,
    }


def types_at(contract_list, chain_id):
    return sorted(c.type.value for c in contract_list.contracts if c.chain_id == chain_id)


class TestFetchPrizePoolAddresses:
    """测试单条链的地址查询"""

    @pytest.mark.asyncio
    async def test_one_batch_for_all_pools_on_chain(self, make_client):
        """同一条链上的两个 Prize Pool 只发出一次 multicall"""
        responses = {**pool_responses(), **pool_responses(POOL_2, TOKEN_2, TICKET_2)}
        client = make_client(chain_id=1, responses=responses)

        addresses = await fetch_prize_pool_addresses(1, client, [
            prize_pool_descriptor(address=POOL),
            prize_pool_descriptor(address=POOL_2),
        ])

        assert client.batch_call.await_count == 1
        assert len(client.batch_call.await_args.args[0]) == 4
        assert client.call.await_count == 0
        assert addresses[POOL] == PrizePoolAddresses(token=TOKEN, ticket=TICKET)
        assert addresses[POOL_2] == PrizePoolAddresses(token=TOKEN_2, ticket=TICKET_2)

    @pytest.mark.asyncio
    async def test_missing_client(self):
        with pytest.raises(ConstructionError):
            await fetch_prize_pool_addresses(1, None, [prize_pool_descriptor()])

    @pytest.mark.asyncio
    async def test_network_mismatch(self, make_client):
        client = make_client(chain_id=1, responses=pool_responses(), remote_chain_id=5)

        with pytest.raises(NetworkMismatchError):
            await fetch_prize_pool_addresses(1, client, [prize_pool_descriptor()])
        assert client.batch_call.await_count == 0

    @pytest.mark.asyncio
    async def test_batch_failure(self, make_client):
        client = make_client(chain_id=1, batch_error=ChainClientError("execution reverted"))

        with pytest.raises(ResolutionError):
            await fetch_prize_pool_addresses(1, client, [prize_pool_descriptor()])


class TestExtendContractsWithChildContracts:
    """测试子合约描述的补充"""

    def test_adds_missing_token_and_ticket(self):
        contracts = [prize_pool_descriptor()]
        addresses = {1: {POOL: PrizePoolAddresses(token=TOKEN, ticket=TICKET)}}

        extended = extend_contracts_with_child_contracts(contracts, addresses)

        assert [c.type for c in extended] == [
            ContractType.YIELD_SOURCE_PRIZE_POOL, ContractType.TOKEN, ContractType.TICKET
        ]
        assert extended[1].abi == ERC20_ABI
        assert extended[2].abi == TICKET_ABI
        # 输入不被修改
        assert len(contracts) == 1

    def test_existing_descriptor_is_not_duplicated(self):
        """已存在的合约（地址大小写不同）不会重复添加"""
        token = create_contract_descriptor(1, "0x" + "A" * 40, ContractType.TOKEN, ERC20_ABI)
        contracts = [prize_pool_descriptor(), token]
        addresses = {1: {POOL: PrizePoolAddresses(token=TOKEN, ticket=TICKET)}}

        extended = extend_contracts_with_child_contracts(contracts, addresses)

        assert [c.type for c in extended].count(ContractType.TOKEN) == 1
        assert [c.type for c in extended].count(ContractType.TICKET) == 1

    def test_shared_token_added_once(self):
        """两个 Prize Pool 共用一个 Token 时只添加一次"""
        contracts = [prize_pool_descriptor(address=POOL), prize_pool_descriptor(address=POOL_2)]
        addresses = {1: {
            POOL: PrizePoolAddresses(token=TOKEN, ticket=TICKET),
            POOL_2: PrizePoolAddresses(token=TOKEN, ticket=TICKET_2),
        }}

        extended = extend_contracts_with_child_contracts(contracts, addresses)

        assert [c.address for c in extended if c.type == ContractType.TOKEN] == [TOKEN]
        assert [c.address for c in extended if c.type == ContractType.TICKET] == [TICKET, TICKET_2]

    def test_same_address_on_other_chain_is_distinct(self):
        token = create_contract_descriptor(137, TOKEN, ContractType.TOKEN, ERC20_ABI)
        contracts = [prize_pool_descriptor(), token]
        addresses = {1: {POOL: PrizePoolAddresses(token=TOKEN, ticket=TICKET)}}

        extended = extend_contracts_with_child_contracts(contracts, addresses)

        assert sorted(c.chain_id for c in extended if c.type == ContractType.TOKEN) == [1, 137]


class TestInitializeLinkedPrizePool:
    """测试 Linked Prize Pool 的组装"""

    @pytest.mark.asyncio
    async def test_seeds_children_from_registry(self, make_client):
        """合约列表中已有 Token 时只补充 Ticket，且之后的查询不再解析子合约"""
        client = make_client(chain_id=1, responses=pool_responses())
        token = create_contract_descriptor(1, TOKEN, ContractType.TOKEN, ERC20_ABI)
        contract_list = ContractList(name="Test", contracts=(prize_pool_descriptor(), token))

        linked = await initialize_linked_prize_pool({1: client}, contract_list)

        assert types_at(linked.contract_list, 1) == ["Ticket", "Token", "YieldSourcePrizePool"]
        pool_metadata = linked.contract_list.contracts[0]
        assert pool_metadata.children == (ChildReference(1, TOKEN), ChildReference(1, TICKET))

        prize_pool = linked.prize_pools[0]
        assert prize_pool.token_contract.address == TOKEN
        assert prize_pool.ticket_contract.address == TICKET
        assert client.call.await_count == 0

        balances = await prize_pool.get_user_balances(USER)
        assert balances.token == 100
        assert calls_to(client, "getToken") == []
        assert calls_to(client, "getTicket") == []
        # 原合约列表不变
        assert len(contract_list.contracts) == 2
        assert contract_list.contracts[0].children == ()

    @pytest.mark.asyncio
    async def test_discovered_children_are_synthesized_and_seeded(self, make_client):
        """合约列表只有 Prize Pool 时，补充 Token / Ticket 描述并直接写入 PrizePool 缓存"""
        client = make_client(chain_id=1, responses=pool_responses())
        contract_list = ContractList(name="Test", contracts=(prize_pool_descriptor(),))

        linked = await initialize_linked_prize_pool({1: client}, contract_list)

        tokens = [c for c in linked.contract_list.contracts if c.type == ContractType.TOKEN]
        tickets = [c for c in linked.contract_list.contracts if c.type == ContractType.TICKET]
        assert [(c.chain_id, c.address) for c in tokens] == [(1, TOKEN)]
        assert tokens[0].abi == ERC20_ABI
        assert [(c.chain_id, c.address) for c in tickets] == [(1, TICKET)]

        prize_pool = linked.prize_pools[0]
        assert prize_pool.token_contract.address == TOKEN
        assert prize_pool.ticket_contract.address == TICKET

        await prize_pool.get_user_token_balance(USER)
        await prize_pool.get_user_ticket_balance(USER)
        assert calls_to(client, "getToken") == []
        assert calls_to(client, "getTicket") == []
        assert client.batch_call.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_networks_are_excluded(self, make_client, caplog):
        """失败的链不产生任何 Prize Pool，也不留下任何合约描述"""
        pool_137 = "0x" + "4" * 40
        pool_5 = "0x" + "5" * 40
        pool_10 = "0x" + "6" * 40
        providers = {
            1: make_client(chain_id=1, responses=pool_responses()),
            137: make_client(chain_id=137, batch_error=ChainClientError("timeout")),
            5: make_client(chain_id=5, remote_chain_id=4),
        }
        other_137 = create_contract_descriptor(137, TOKEN_2, ContractType.DRAW_BEACON, [])
        contract_list = ContractList(name="Test", contracts=(
            prize_pool_descriptor(chain_id=1),
            prize_pool_descriptor(chain_id=137, address=pool_137),
            other_137,
            prize_pool_descriptor(chain_id=5, address=pool_5),
            prize_pool_descriptor(chain_id=10, address=pool_10),
        ))

        with caplog.at_level(logging.ERROR):
            linked = await initialize_linked_prize_pool(providers, contract_list)

        assert [(p.chain_id, p.address) for p in linked.prize_pools] == [(1, POOL)]
        assert linked.chain_ids == [1]
        assert {c.chain_id for c in linked.contract_list.contracts} == {1}
        for chain_id in (137, 5, 10):
            assert f"chain {chain_id} failed" in caplog.text

    @pytest.mark.asyncio
    async def test_multiple_networks(self, make_client):
        providers = {
            1: make_client(chain_id=1, responses=pool_responses()),
            137: make_client(chain_id=137, responses=pool_responses(POOL_2, TOKEN_2, TICKET_2)),
        }
        contract_list = ContractList(name="Test", contracts=(
            prize_pool_descriptor(chain_id=1),
            prize_pool_descriptor(chain_id=137, address=POOL_2),
        ))

        linked = await initialize_linked_prize_pool(providers, contract_list)

        assert linked.chain_ids == [1, 137]
        assert types_at(linked.contract_list, 137) == ["Ticket", "Token", "YieldSourcePrizePool"]
        for client in providers.values():
            assert client.batch_call.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_contract_list(self):
        linked = await initialize_linked_prize_pool({}, ContractList(name="Empty"))

        assert linked.prize_pools == ()
        assert linked.chain_ids == []


class TestLinkedPrizePool:
    """测试跨链汇总查询"""

    @pytest.fixture
    def providers(self, make_client):
        return {
            1: make_client(chain_id=1, responses=pool_responses()),
            137: make_client(chain_id=137, responses=pool_responses(POOL_2, TOKEN_2, TICKET_2)),
        }

    @pytest.fixture
    def linked(self, providers):
        return LinkedPrizePool(providers, ContractList(name="Test", contracts=(
            prize_pool_descriptor(chain_id=1),
            prize_pool_descriptor(chain_id=137, address=POOL_2),
        )))

    @pytest.mark.asyncio
    async def test_get_users_prize_pool_balances(self, linked):
        balances = await linked.get_users_prize_pool_balances(USER)

        assert [(b.chain_id, b.address) for b in balances] == [(1, POOL), (137, POOL_2)]
        assert all(b.balances.token == 100 and b.balances.ticket == 40 for b in balances)

    def test_get_prize_pool(self, linked):
        assert linked.get_prize_pool(137, POOL_2.upper().replace("0X", "0x")).chain_id == 137
        assert linked.get_prize_pool(1, POOL_2) is None

    def test_pool_without_provider_is_skipped(self, make_client):
        linked = LinkedPrizePool({1: make_client(chain_id=1)}, ContractList(name="Test", contracts=(
            prize_pool_descriptor(chain_id=1),
            prize_pool_descriptor(chain_id=137, address=POOL_2),
        )))

        assert linked.chain_ids == [1]
        assert "prize_pools=1" in repr(linked)
