"""
BlockChain - Bounded fork tree over UTXO snapshots.

Conceptual Background:
---------------------
Blocks arrive in any order and may extend any recent block, so the chain
is really a tree of competing branches. Each tracked block is wrapped in a
BranchNode that owns the UTXO pool reached by applying every block from
genesis down that branch. Branches never share pools: a sibling spending
the same output as its twin is valid on its own branch.

Canonical Head:
--------------
The head is the first block to reach the greatest height. A block at or
below the current max height is still tracked, so later blocks can extend
it, but it does not take over the head.

Memory Bound:
------------
Only blocks close to the head are kept. With cut_off_age = C and max
height H:

- A block whose height would be <= H - C is rejected outright
- When H advances, every node at height <= H - C - 1 is dropped from the
  hash index, the height buckets and the ancestry graph

Block Submission:
----------------
1. Reject blocks without a parent hash or with an unhashable coinbase
   (malformed) and blocks carrying unhashable transactions (invalid);
   recompute every transaction hash and the block hash
2. Reject blocks whose parent is not tracked (unknown or pruned)
3. Reject blocks too far behind the head (stale)
4. Accept the block's transactions against the parent's pool; any
   rejected transaction rejects the whole block
5. Credit the coinbase outputs unconditionally
6. Track the new node; advance the head and prune if it is the tallest

A rejected block leaves no trace. All of steps 1-6 run under one lock.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

import networkx as nx

from forkchain.crypto import verify_signature, short_hex
from forkchain.core.block import Block
from forkchain.core.config import ChainConfig, config as default_config
from forkchain.core.mempool import TransactionPool
from forkchain.core.state.utxo import UTXOPool
from forkchain.core.state.transaction import Transaction
from forkchain.core.state.validator import Verifier, accept_batch, credit_outputs
from forkchain.utils.logger import get_logger

logger = get_logger("chain")


# =============================================================================
# Submission Results
# =============================================================================


class RejectReason(Enum):
    """Why a block was not added to the chain."""
    MALFORMED_BLOCK = "malformed_block"
    DUPLICATE_BLOCK = "duplicate_block"
    UNKNOWN_PARENT = "unknown_parent"
    STALE_BLOCK = "stale_block"
    INVALID_TRANSACTIONS = "invalid_transactions"


@dataclass
class BlockResult:
    """Result of submitting a block."""
    accepted: bool
    reason: Optional[RejectReason] = None
    height: Optional[int] = None
    error: str = ""


# =============================================================================
# Branch Node
# =============================================================================


class BranchNode:
    """
    One tracked block and the ledger state its branch reaches.
    
    Attributes:
        block: The tracked block
        parent: Parent node (None for genesis, or once the parent is pruned)
        height: parent height + 1; genesis is 1
        utxo_pool: Pool owned exclusively by this node
    """
    
    def __init__(self, block: Block, parent: Optional["BranchNode"], utxo_pool: UTXOPool):
        self.block = block
        self.parent = parent
        self.height = parent.height + 1 if parent is not None else 1
        self.utxo_pool = utxo_pool
    
    @property
    def block_hash(self) -> bytes:
        return self.block.block_hash
    
    def copy_utxo_pool(self) -> UTXOPool:
        return self.utxo_pool.copy()
    
    def __repr__(self) -> str:
        return f"BranchNode(hash={short_hex(self.block_hash)}, height={self.height})"


# =============================================================================
# Block Chain
# =============================================================================


class BlockChain:
    """
    Fork-tree manager.
    
    Tracks every block within the cut-off window behind the head, each with
    its own UTXO pool, and forwards submitted transactions to a
    TransactionPool for block assembly.
    
    Attributes:
        recent_nodes: block hash -> BranchNode
        nodes_at_height: height -> {block hash -> BranchNode}
        graph: networkx DiGraph of tracked hashes (edges go parent -> child)
        head: Node of the current max-height block
        max_height: Height of the head
    """
    
    def __init__(
        self,
        genesis_block: Block,
        config: Optional[ChainConfig] = None,
        verifier: Verifier = verify_signature,
        transaction_pool: Optional[TransactionPool] = None,
    ):
        """
        Create a chain holding only the genesis block.
        
        The genesis block is trusted: every output of every transaction it
        carries, coinbase included, is credited without validation.
        
        Args:
            genesis_block: Root block (assumed valid)
            config: Chain configuration (defaults to the global config)
            verifier: Signature verification capability
            transaction_pool: Pool for pending transactions
        """
        self.config = config or default_config
        self.cut_off_age = self.config.cut_off_age
        self.verifier = verifier
        self.transaction_pool = transaction_pool or TransactionPool(
            max_size=self.config.mempool_max_size
        )
        self._lock = threading.RLock()
        
        genesis_block.finalize()
        
        pool = UTXOPool()
        for tx in genesis_block.transactions + [genesis_block.coinbase]:
            credit_outputs(pool, tx)
        
        genesis_node = BranchNode(genesis_block, None, pool)
        
        self.recent_nodes: Dict[bytes, BranchNode] = {}
        self.nodes_at_height: Dict[int, Dict[bytes, BranchNode]] = {}
        self.graph = nx.DiGraph()
        self._track(genesis_node)
        
        self.head = genesis_node
        self.max_height = genesis_node.height
        
        logger.info(
            f"Chain initialized: genesis {short_hex(genesis_block.block_hash)}, "
            f"{len(pool)} UTXOs, cut_off_age={self.cut_off_age}"
        )
    
    # =========================================================================
    # Head Access
    # =========================================================================
    
    def get_max_height_block(self) -> Block:
        """Block at the head of the canonical branch."""
        with self._lock:
            return self.head.block
    
    def get_max_height_utxo_pool(self) -> UTXOPool:
        """Copy of the head's UTXO pool, for building the next block."""
        with self._lock:
            return self.head.copy_utxo_pool()
    
    # =========================================================================
    # Transaction Pool
    # =========================================================================
    
    def get_transaction_pool(self) -> TransactionPool:
        return self.transaction_pool
    
    def add_transaction(self, tx: Transaction) -> Tuple[bool, str]:
        """Forward a transaction to the pending pool."""
        return self.transaction_pool.add(tx)
    
    def get_pending_transactions(self) -> List[Transaction]:
        return self.transaction_pool.get_transactions()
    
    # =========================================================================
    # Block Submission
    # =========================================================================
    
    def add_block(self, block: Block) -> bool:
        """
        Add a block if it is valid and recent enough.
        
        Returns:
            True if the block is now tracked
        """
        return self.submit_block(block).accepted
    
    def submit_block(self, block: Block) -> BlockResult:
        """
        Add a block, reporting why it was rejected if it was.
        
        Args:
            block: Candidate block
            
        Returns:
            BlockResult
        """
        with self._lock:
            result = self._submit(block)
        
        if not result.accepted:
            logger.debug(
                f"Rejected block {short_hex(block.block_hash)}: "
                f"{result.reason.value} {result.error}".rstrip()
            )
        return result
    
    def _submit(self, block: Block) -> BlockResult:
        if block.prev_block_hash is None:
            return BlockResult(False, RejectReason.MALFORMED_BLOCK, error="No parent hash")
        
        encodable, error = block.validate_encoding()
        if not encodable:
            return BlockResult(False, RejectReason.MALFORMED_BLOCK, error=error)
        for i, tx in enumerate(block.transactions):
            encodable, error = tx.validate_encoding()
            if not encodable:
                return BlockResult(
                    False, RejectReason.INVALID_TRANSACTIONS, error=f"Transaction {i}: {error}"
                )
        
        # Carried hashes are never trusted as output identities
        block.finalize()
        if block.block_hash in self.recent_nodes:
            return BlockResult(False, RejectReason.DUPLICATE_BLOCK)
        
        parent = self.recent_nodes.get(block.prev_block_hash)
        if parent is None:
            return BlockResult(False, RejectReason.UNKNOWN_PARENT)
        
        height = parent.height + 1
        if height <= self.max_height - self.cut_off_age:
            return BlockResult(
                False,
                RejectReason.STALE_BLOCK,
                height=height,
                error=f"height {height} <= {self.max_height} - {self.cut_off_age}",
            )
        
        # accept_batch works on its own copy of the parent's pool
        batch = accept_batch(parent.utxo_pool, block.transactions, self.verifier)
        if not batch.all_accepted:
            return BlockResult(
                False,
                RejectReason.INVALID_TRANSACTIONS,
                height=height,
                error=f"{len(batch.rejected)} of {len(block.transactions)} transactions invalid",
            )
        
        pool = batch.utxo_pool
        credit_outputs(pool, block.coinbase)
        
        node = BranchNode(block, parent, pool)
        self._track(node)
        
        if height > self.max_height:
            self.max_height = height
            self.head = node
            self._prune()
            for tx in block.transactions:
                self.transaction_pool.remove(tx.tx_hash)
            logger.info(
                f"New head {short_hex(block.block_hash)} at height {height} "
                f"({len(block.transactions)} txs, {len(pool)} UTXOs)"
            )
        else:
            logger.info(
                f"Tracked fork {short_hex(block.block_hash)} at height {height} "
                f"(head stays at {self.max_height})"
            )
        
        return BlockResult(True, height=height)
    
    # =========================================================================
    # Index Maintenance
    # =========================================================================
    
    def _track(self, node: BranchNode) -> None:
        block_hash = node.block_hash
        self.recent_nodes[block_hash] = node
        self.nodes_at_height.setdefault(node.height, {})[block_hash] = node
        self.graph.add_node(block_hash)
        if node.parent is not None:
            self.graph.add_edge(node.parent.block_hash, block_hash)
    
    def _prune(self) -> None:
        """Drop every node at height <= max_height - cut_off_age - 1."""
        horizon = self.max_height - self.cut_off_age - 1
        expired = sorted(h for h in self.nodes_at_height if h <= horizon)
        
        dropped = 0
        for height in expired:
            for block_hash, node in self.nodes_at_height.pop(height).items():
                # Children must not keep the pruned node (and its pool) alive
                for child_hash in self.graph.successors(block_hash):
                    self.recent_nodes[child_hash].parent = None
                self.graph.remove_node(block_hash)
                del self.recent_nodes[block_hash]
                dropped += 1
        
        if dropped:
            logger.debug(f"Pruned {dropped} nodes at height <= {horizon}")
    
    # =========================================================================
    # Queries
    # =========================================================================
    
    def get_node(self, block_hash: bytes) -> Optional[BranchNode]:
        with self._lock:
            return self.recent_nodes.get(block_hash)
    
    def get_nodes_at_height(self, height: int) -> List[BranchNode]:
        with self._lock:
            return list(self.nodes_at_height.get(height, {}).values())
    
    def tracked_count(self) -> int:
        """Number of blocks currently tracked."""
        with self._lock:
            return len(self.recent_nodes)
    
    def get_tips(self) -> List[BranchNode]:
        """Tracked nodes that no tracked block extends."""
        with self._lock:
            return [
                self.recent_nodes[h]
                for h in self.graph.nodes
                if self.graph.out_degree(h) == 0
            ]
    
    def is_ancestor(self, ancestor_hash: bytes, block_hash: bytes) -> bool:
        """
        Check whether ancestor_hash lies on block_hash's branch.
        
        Only tracked blocks are considered.
        """
        with self._lock:
            if ancestor_hash not in self.graph or block_hash not in self.graph:
                return False
            if ancestor_hash == block_hash:
                return False
            return nx.has_path(self.graph, ancestor_hash, block_hash)
    
    def get_branch(self, block_hash: bytes) -> List[Block]:
        """
        Tracked blocks on the branch ending at block_hash, oldest first.
        
        Returns an empty list for an untracked hash.
        """
        with self._lock:
            node = self.recent_nodes.get(block_hash)
            branch = []
            while node is not None:
                branch.append(node.block)
                node = node.parent
            branch.reverse()
            return branch
    
    def __repr__(self) -> str:
        return (
            f"BlockChain(height={self.max_height}, tracked={len(self.recent_nodes)}, "
            f"head={short_hex(self.head.block_hash)})"
        )
