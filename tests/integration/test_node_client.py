"""Integration tests for NodeClient."""

from collections.abc import AsyncGenerator

import aiohttp
import pytest
from aioresponses import aioresponses as aioresponses_cls
from yarl import URL

from node_test_suite.config import SuiteConfig
from node_test_suite.node_client import NodeClient

RPC_URL = "http://node.test:9944"


def block_response(number: object) -> dict[str, object]:
    """A chain_getBlock response carrying the given header number."""
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "result": {
            "block": {
                "header": {
                    "number": number,
                    "parentHash": "0x8a71",
                    "stateRoot": "0x5c1e",
                },
                "extrinsics": ["0x280402000b"],
            },
            "justifications": None,
        },
    }


@pytest.fixture
async def client(
    config: SuiteConfig, aioresponses: aioresponses_cls
) -> AsyncGenerator[NodeClient, None]:
    """Create client with managed session."""
    config = config.model_copy(update={"rpc_url": RPC_URL})
    async with NodeClient.from_config(config) as impl:
        yield impl


class TestHealth:
    """Tests for the health probe."""

    async def test_returns_body(
        self, client: NodeClient, aioresponses: aioresponses_cls
    ) -> None:
        """Returns the health endpoint body."""
        body = '{"peers":0,"isSyncing":false,"shouldHavePeers":false}'
        aioresponses.get(f"{RPC_URL}/health", body=body)

        assert await client.health() == body

    async def test_any_status_counts_as_reachable(
        self, client: NodeClient, aioresponses: aioresponses_cls
    ) -> None:
        """An error status still means the node answered."""
        aioresponses.get(f"{RPC_URL}/health", status=503, body="starting")

        assert await client.is_healthy()

    async def test_connection_refused(
        self, client: NodeClient, aioresponses: aioresponses_cls
    ) -> None:
        """Reports an unreachable node as unhealthy."""
        aioresponses.get(
            f"{RPC_URL}/health", exception=aiohttp.ClientConnectionError("refused")
        )

        assert await client.health() is None
        assert not await client.is_healthy()


class TestBlockNumber:
    """Tests for the block number probe."""

    async def test_decodes_header_number(
        self, client: NodeClient, aioresponses: aioresponses_cls
    ) -> None:
        """Posts chain_getBlock and decodes the hex header number."""
        aioresponses.post(f"{RPC_URL}/", payload=block_response("0x1a"))

        assert await client.block_number() == 26

        call = aioresponses.requests[("POST", URL(f"{RPC_URL}/"))][0]
        assert call.kwargs["json"] == {
            "id": 1,
            "jsonrpc": "2.0",
            "method": "chain_getBlock",
        }

    @pytest.mark.parametrize(
        "payload",
        [
            {"jsonrpc": "2.0", "id": 1, "result": None},
            {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "x"}},
            block_response("not-hex"),
            block_response(17),
            {"jsonrpc": "2.0", "id": 1, "result": {"block": {}}},
        ],
    )
    async def test_malformed_responses(
        self,
        client: NodeClient,
        aioresponses: aioresponses_cls,
        payload: dict[str, object],
    ) -> None:
        """Anything without a hex header number counts as missing."""
        aioresponses.post(f"{RPC_URL}/", payload=payload)

        assert await client.block_number() is None

    async def test_non_json_body(
        self, client: NodeClient, aioresponses: aioresponses_cls
    ) -> None:
        """An undecodable body counts as missing."""
        aioresponses.post(f"{RPC_URL}/", body="<html>Bad Gateway</html>", status=502)

        assert await client.block_number() is None

    async def test_connection_refused(
        self, client: NodeClient, aioresponses: aioresponses_cls
    ) -> None:
        """An unreachable node counts as missing."""
        aioresponses.post(
            f"{RPC_URL}/", exception=aiohttp.ClientConnectionError("refused")
        )

        assert await client.block_number() is None
