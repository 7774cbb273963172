"""
BlockProducer - Assembles blocks on top of the current head.

Ties together the pieces needed to extend the chain:
- Collects pending transactions from the chain's transaction pool
- Keeps the mutually valid subset against the head's UTXO pool
- Evicts pending transactions the head can no longer accept
- Pays the block reward to the producer via the coinbase
- Submits the block to the fork tree
"""

from typing import Optional, Tuple

from forkchain.crypto import short_hex
from forkchain.core.block import Block, create_block
from forkchain.core.chain import BlockChain
from forkchain.core.config import ChainConfig
from forkchain.core.state.validator import TxHandler, check_transaction
from forkchain.utils.logger import get_logger

logger = get_logger("block_producer")


class BlockProducer:
    """
    Builds and submits blocks for one producer key.
    
    Pending transactions that do not validate against the head are left
    out of the block and evicted from the pool. Transactions that are
    valid alone but lose a conflict inside the block stay pooled.
    """
    
    def __init__(
        self,
        chain: BlockChain,
        public_key: bytes,
        config: Optional[ChainConfig] = None,
    ):
        """
        Args:
            chain: Fork tree to extend
            public_key: Producer key receiving coinbase rewards
            config: Chain configuration (defaults to the chain's)
        """
        self.chain = chain
        self.public_key = public_key
        self.config = config or chain.config
        
        self.blocks_produced = 0
        self.total_tx_processed = 0
        self.total_tx_evicted = 0
    
    def create_block(self) -> Tuple[Block, bool]:
        """
        Build a block on the current head and submit it.
        
        Returns:
            (block, accepted)
        """
        parent = self.chain.get_max_height_block()
        head_pool = self.chain.get_max_height_utxo_pool()
        tx_pool = self.chain.get_transaction_pool()
        pending = tx_pool.get_transactions(self.config.max_transactions_per_block)
        
        handler = TxHandler(head_pool, self.chain.verifier)
        included = handler.handle_txs(pending)
        self._evict_invalid(head_pool, pending, included)
        
        block = create_block(
            parent.block_hash,
            self.public_key,
            included,
            reward=self.config.coinbase_reward,
        )
        accepted = self.chain.add_block(block)
        
        if accepted:
            self.blocks_produced += 1
            self.total_tx_processed += len(included)
            logger.info(
                f"Produced block {short_hex(block.block_hash)}: "
                f"{len(included)}/{len(pending)} pending txs included"
            )
        else:
            logger.warning(f"Produced block {short_hex(block.block_hash)} was rejected")
        
        return block, accepted
    
    def _evict_invalid(self, head_pool, pending, included) -> None:
        """
        Drop pending transactions that are invalid on their own against the head.
        
        Transactions that only lost a same-block conflict stay pooled.
        """
        included_ids = {id(tx) for tx in included}
        tx_pool = self.chain.get_transaction_pool()
        for tx in pending:
            if id(tx) in included_ids:
                continue
            valid, error = check_transaction(head_pool, tx, self.chain.verifier)
            if not valid:
                tx_pool.remove(tx.tx_hash)
                self.total_tx_evicted += 1
                logger.debug(f"Evicted tx {short_hex(tx.tx_hash)}: {error}")
    
    def stats(self) -> dict:
        """Get production statistics."""
        return {
            "blocks_produced": self.blocks_produced,
            "total_tx_processed": self.total_tx_processed,
            "total_tx_evicted": self.total_tx_evicted,
            "pending": len(self.chain.get_transaction_pool()),
            "chain_height": self.chain.max_height,
        }
