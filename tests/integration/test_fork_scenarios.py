"""
Fork Scenarios - End-to-end behaviour of the ledger core.

Tests verify:
1. Genesis funding and a first spend
2. Competing blocks double-spending on separate branches
3. Overspending blocks leave the chain untouched
4. The cut-off window rejects blocks behind the head
5. Conservation and no-double-spend along every branch
6. Snapshot isolation between sibling branches
7. Bounded memory on a long chain
"""

import pytest

from forkchain.crypto import generate_keypair
from forkchain.core.block import create_block, create_genesis_block
from forkchain.core.chain import BlockChain, RejectReason
from forkchain.core.config import ChainConfig
from forkchain.core.state import UTXO, TxOutput, create_transfer


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def alice():
    return generate_keypair()


@pytest.fixture
def bob():
    return generate_keypair()


@pytest.fixture
def carol():
    return generate_keypair()


@pytest.fixture
def genesis(alice):
    """Genesis with a single 25-token coinbase owned by alice."""
    return create_genesis_block(alice.public_key, reward=25)


@pytest.fixture
def chain(genesis):
    return BlockChain(genesis, config=ChainConfig(cut_off_age=10))


@pytest.fixture
def coinbase_ref(genesis):
    return UTXO(genesis.coinbase.tx_hash, 0)


# =============================================================================
# Scenarios
# =============================================================================


class TestScenarios:
    """The reference scenarios, in order."""
    
    def test_genesis_working_set(self, chain, coinbase_ref, alice):
        """Genesis with one 25-token coinbase: one output, height 1."""
        pool = chain.get_max_height_utxo_pool()
        
        assert len(pool) == 1
        assert pool.get(coinbase_ref) == TxOutput(25, alice.public_key)
        assert chain.max_height == 1
    
    def test_first_spend(self, chain, genesis, coinbase_ref, alice, bob, carol):
        """Spending the coinbase in full moves the head to height 2."""
        tx = create_transfer([(coinbase_ref, alice.private_key)], [(bob.public_key, 25)])
        b1 = create_block(genesis.block_hash, carol.public_key, [tx])
        
        assert chain.add_block(b1)
        
        pool = chain.get_max_height_utxo_pool()
        assert chain.max_height == 2
        assert chain.get_max_height_block() is b1
        assert not pool.contains(coinbase_ref)
        assert pool.get(UTXO(tx.tx_hash, 0)) == TxOutput(25, bob.public_key)
    
    def test_competing_double_spend(self, chain, genesis, coinbase_ref, alice, bob, carol):
        """A sibling spending the same coinbase is tracked but does not become head."""
        tx1 = create_transfer([(coinbase_ref, alice.private_key)], [(bob.public_key, 25)])
        tx2 = create_transfer([(coinbase_ref, alice.private_key)], [(carol.public_key, 25)])
        b1 = create_block(genesis.block_hash, alice.public_key, [tx1])
        b1_prime = create_block(genesis.block_hash, alice.public_key, [tx2])
        
        assert chain.add_block(b1)
        assert chain.add_block(b1_prime)
        
        assert chain.get_max_height_block() is b1
        assert chain.max_height == 2
        
        fork_pool = chain.get_node(b1_prime.block_hash).utxo_pool
        assert fork_pool.get_balance(carol.public_key) == 25
        assert fork_pool.get_balance(bob.public_key) == 0
        assert chain.get_max_height_utxo_pool().get_balance(carol.public_key) == 0
    
    def test_overspend_rejected(self, chain, genesis, coinbase_ref, alice, bob):
        """Outputs exceeding inputs reject the block; the chain is unchanged."""
        before = chain.get_max_height_utxo_pool()
        tx = create_transfer([(coinbase_ref, alice.private_key)], [(bob.public_key, 30)])
        block = create_block(genesis.block_hash, bob.public_key, [tx])
        
        result = chain.submit_block(block)
        
        assert not result.accepted
        assert result.reason == RejectReason.INVALID_TRANSACTIONS
        assert chain.max_height == 1
        assert chain.tracked_count() == 1
        assert chain.get_max_height_utxo_pool() == before
    
    def test_cut_off_window(self, genesis, alice, bob):
        """cut_off_age=2: after four commits a block on genesis is refused."""
        chain = BlockChain(genesis, config=ChainConfig(cut_off_age=2))
        parent = genesis.block_hash
        for _ in range(4):
            block = create_block(parent, alice.public_key)
            assert chain.add_block(block)
            parent = block.block_hash
        assert chain.max_height == 5
        
        late = create_block(genesis.block_hash, bob.public_key)
        result = chain.submit_block(late)
        
        # Height 2 <= 5 - 2; genesis itself has already left the window
        assert not result.accepted
        assert result.reason in (RejectReason.STALE_BLOCK, RejectReason.UNKNOWN_PARENT)
    
    def test_cut_off_window_not_yet_closed(self, genesis, alice, bob):
        """With max height <= cut_off_age + 1, genesis can still be extended."""
        chain = BlockChain(genesis, config=ChainConfig(cut_off_age=2))
        parent = genesis.block_hash
        for _ in range(2):
            block = create_block(parent, alice.public_key)
            assert chain.add_block(block)
            parent = block.block_hash
        assert chain.max_height == 3
        
        assert chain.add_block(create_block(genesis.block_hash, bob.public_key))


# =============================================================================
# Properties
# =============================================================================


class TestLedgerProperties:
    """Invariants that hold across branches."""
    
    def test_conservation_along_branch(self, chain, genesis, coinbase_ref, alice, bob, carol):
        """Total value only grows by coinbase rewards; fees are burnt."""
        tx1 = create_transfer([(coinbase_ref, alice.private_key)], [(bob.public_key, 20)])
        b1 = create_block(genesis.block_hash, carol.public_key, [tx1])
        assert chain.add_block(b1)
        
        tx2 = create_transfer([(UTXO(tx1.tx_hash, 0), bob.private_key)], [(carol.public_key, 18)])
        b2 = create_block(b1.block_hash, carol.public_key, [tx2])
        assert chain.add_block(b2)
        
        pool = chain.get_max_height_utxo_pool()
        # 25 genesis + 2 * 25 rewards - fees of 5 and 2
        assert pool.total_value() == 25 + 50 - 5 - 2
        assert pool.get_balance(carol.public_key) == 18 + 50
    
    def test_no_double_spend_down_a_branch(self, chain, genesis, coinbase_ref, alice, bob):
        """An output spent by a parent cannot be spent again by its child."""
        tx1 = create_transfer([(coinbase_ref, alice.private_key)], [(bob.public_key, 25)])
        b1 = create_block(genesis.block_hash, alice.public_key, [tx1])
        assert chain.add_block(b1)
        
        replay = create_transfer([(coinbase_ref, alice.private_key)], [(alice.public_key, 25)])
        b2 = create_block(b1.block_hash, alice.public_key, [replay])
        
        assert chain.submit_block(b2).reason == RejectReason.INVALID_TRANSACTIONS
    
    def test_sibling_snapshots_are_independent(self, chain, genesis, coinbase_ref, alice, bob, carol):
        """Mutating one branch's pool never changes its sibling's."""
        tx1 = create_transfer([(coinbase_ref, alice.private_key)], [(bob.public_key, 25)])
        tx2 = create_transfer([(coinbase_ref, alice.private_key)], [(carol.public_key, 25)])
        b1 = create_block(genesis.block_hash, alice.public_key, [tx1])
        b2 = create_block(genesis.block_hash, alice.public_key, [tx2])
        assert chain.add_block(b1) and chain.add_block(b2)
        
        pool1 = chain.get_node(b1.block_hash).utxo_pool
        pool2 = chain.get_node(b2.block_hash).utxo_pool
        sibling_before = pool2.copy()
        
        pool1.remove(UTXO(tx1.tx_hash, 0))
        pool1.put(UTXO(b"\x01" * 32, 0), TxOutput(1000, bob.public_key))
        
        assert pool2 == sibling_before
        assert chain.get_node(genesis.block_hash).utxo_pool.contains(coinbase_ref)
    
    def test_head_working_set_is_caller_owned(self, chain, coinbase_ref):
        working = chain.get_max_height_utxo_pool()
        working.remove(coinbase_ref)
        assert chain.get_max_height_utxo_pool().contains(coinbase_ref)
    
    def test_branches_extend_independently(self, chain, genesis, coinbase_ref, alice, bob, carol):
        """Each fork builds on its own state."""
        tx_bob = create_transfer([(coinbase_ref, alice.private_key)], [(bob.public_key, 25)])
        tx_carol = create_transfer([(coinbase_ref, alice.private_key)], [(carol.public_key, 25)])
        b1 = create_block(genesis.block_hash, alice.public_key, [tx_bob])
        b1_prime = create_block(genesis.block_hash, alice.public_key, [tx_carol])
        assert chain.add_block(b1) and chain.add_block(b1_prime)
        
        # Carol's output only exists on b1'
        spend = create_transfer([(UTXO(tx_carol.tx_hash, 0), carol.private_key)], [(bob.public_key, 25)])
        assert not chain.add_block(create_block(b1.block_hash, carol.public_key, [spend]))
        
        b2_prime = create_block(b1_prime.block_hash, carol.public_key, [spend])
        assert chain.add_block(b2_prime)
        assert chain.get_max_height_block() is b2_prime
        assert chain.get_branch(b2_prime.block_hash) == [genesis, b1_prime, b2_prime]
    
    def test_memory_bounded_on_long_chain(self, genesis, alice):
        """Tracked nodes stay at cut_off_age + 1 however long the chain grows."""
        chain = BlockChain(genesis, config=ChainConfig(cut_off_age=10))
        parent = genesis.block_hash
        counts = []
        for _ in range(40):
            block = create_block(parent, alice.public_key)
            assert chain.add_block(block)
            parent = block.block_hash
            counts.append(chain.tracked_count())
        
        assert max(counts) == 11
        assert counts[-1] == 11
        assert len(chain.graph) == 11
    
    def test_pruned_branch_cannot_be_extended(self, genesis, alice, bob):
        chain = BlockChain(genesis, config=ChainConfig(cut_off_age=2))
        side = create_block(genesis.block_hash, bob.public_key)
        
        parent = genesis.block_hash
        for i in range(4):
            block = create_block(parent, alice.public_key)
            assert chain.add_block(block)
            parent = block.block_hash
            if i == 0:
                assert chain.add_block(side)
        
        child = create_block(side.block_hash, bob.public_key)
        assert chain.submit_block(child).reason == RejectReason.UNKNOWN_PARENT
