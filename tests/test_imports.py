"""Basic import tests to verify modules can be loaded."""
import os

import pytest


def test_package_exports():
    """Test that the package exposes the public API."""
    import solana_indexer
    assert hasattr(solana_indexer, 'SolanaIndexer')
    assert hasattr(solana_indexer, 'ProcessorChain')
    assert hasattr(solana_indexer, 'DROP')
    assert solana_indexer.__version__ == '0.1.0'


def test_indexer_imports():
    """Test that indexer module can be imported."""
    import solana_indexer.indexer
    assert hasattr(solana_indexer.indexer, 'SolanaIndexer')


def test_rpc_imports():
    """Test that rpc module can be imported."""
    import solana_indexer.rpc
    assert hasattr(solana_indexer.rpc, 'BaseRPCProvider')
    assert hasattr(solana_indexer.rpc, 'SolanaRPCProvider')
    assert hasattr(solana_indexer.rpc, 'create_rpc_provider')


def test_schema_imports():
    """Test that schema module can be imported."""
    import solana_indexer.schema
    assert hasattr(solana_indexer.schema, 'create_account_schema')
    assert hasattr(solana_indexer.schema, 'create_transaction_schema')


def test_metrics_imports():
    """Test that metrics module can be imported."""
    import solana_indexer.metrics
    assert hasattr(solana_indexer.metrics, 'records_saved')
    assert hasattr(solana_indexer.metrics, 'rpc_reconnects')


@pytest.mark.parametrize("module_name", [
    'solana_indexer.config',
    'solana_indexer.exceptions',
    'solana_indexer.indexer',
    'solana_indexer.main',
    'solana_indexer.metrics',
    'solana_indexer.models',
    'solana_indexer.processors',
    'solana_indexer.rpc',
    'solana_indexer.schema',
    'solana_indexer.storage',
    'solana_indexer.storage.mongo_storage',
    'solana_indexer.storage.parquet_storage',
    'solana_indexer.storage.postgres',
    'solana_indexer.storage.redis_storage',
    'solana_indexer.utils',
])
def test_module_imports_no_errors(module_name):
    """Test that all modules can be imported without errors."""
    try:
        __import__(module_name)
    except ImportError as e:
        pytest.fail(f"Failed to import {module_name}: {e}")


def test_env_example_exists():
    """Test that .env.example file exists."""
    root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    assert os.path.exists(os.path.join(root, '.env.example')), ".env.example file is missing"
