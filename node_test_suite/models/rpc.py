"""Pydantic models for the node's JSON-RPC responses."""

from node_test_suite.models.base import Model


class BlockHeader(Model):
    """Header of a block; ``number`` is a hexadecimal quantity."""

    number: str


class Block(Model):
    """A block as returned by ``chain_getBlock``."""

    header: BlockHeader


class SignedBlock(Model):
    """A block with its justifications."""

    block: Block


class GetBlockResponse(Model):
    """Response envelope of ``chain_getBlock``."""

    result: SignedBlock | None = None
