"""HTTP and JSON-RPC probes against a running node."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import aiohttp
from pydantic import ValidationError

from node_test_suite.config import SuiteConfig
from node_test_suite.models.rpc import GetBlockResponse
from node_test_suite.readiness import parse_hex_quantity

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class NodeClient:
    """Read-only probes of the node's health endpoint and JSON-RPC API.

    Every probe returns None on any transport or decoding problem, so it is
    safe to call repeatedly from a readiness poll.
    """

    health_path: str
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: SuiteConfig
    ) -> AsyncGenerator["NodeClient", None]:
        """Create a client with a managed session lifecycle."""
        async with aiohttp.ClientSession(
            base_url=config.rpc_url,
            timeout=aiohttp.ClientTimeout(total=config.rpc_timeout),
        ) as session:
            yield cls(health_path=config.health_path, session=session)

    async def health(self) -> str | None:
        """Fetch the health endpoint body, or None if unreachable."""
        try:
            async with self.session.get(self.health_path) as response:
                return await response.text()
        except (aiohttp.ClientError, TimeoutError) as e:
            log.debug("Health probe failed: %s", e)
            return None

    async def is_healthy(self) -> bool:
        """Whether the health endpoint answered at all."""
        return await self.health() is not None

    async def block_number(self) -> int | None:
        """Current best block number, or None if it cannot be read."""
        payload = {"id": 1, "jsonrpc": "2.0", "method": "chain_getBlock"}
        try:
            async with self.session.post("/", json=payload) as response:
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            log.debug("chain_getBlock failed: %s", e)
            return None

        try:
            block = GetBlockResponse.model_validate(data)
        except ValidationError as e:
            log.debug("Unexpected chain_getBlock response: %s", e)
            return None

        if block.result is None:
            return None
        return parse_hex_quantity(block.result.block.header.number)
