"""
Configuration for the Raydium CLMM tick inspector.

Shared protocol constants (tick bounds, tick array geometry, bitmap layout,
PDA seeds) live here so that every module reads the same numbers.
Raydium CLMM is a Uniswap V3 style pool with Q64.64 sqrt prices and
60-slot tick arrays stored as separate program accounts.
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class ClusterConfig:
    """Solana cluster configuration."""
    name: str
    rpc_url: str
    explorer_url: str


@dataclass
class ProgramConfig:
    """CLMM program deployment."""
    name: str
    program_id: str          # base58
    cluster: str = "mainnet-beta"


# ============================================================
# CLUSTER CONFIGURATIONS
# ============================================================

MAINNET_BETA = ClusterConfig(
    name="mainnet-beta",
    rpc_url="https://api.mainnet-beta.solana.com",
    explorer_url="https://solscan.io",
)

# Public devnet endpoint is heavily rate limited
DEVNET = ClusterConfig(
    name="devnet",
    rpc_url="https://api.devnet.solana.com",
    explorer_url="https://solscan.io/?cluster=devnet",
)

CLUSTERS: Dict[str, ClusterConfig] = {
    MAINNET_BETA.name: MAINNET_BETA,
    DEVNET.name: DEVNET,
}

# Environment variable that overrides the cluster RPC url
RPC_URL_ENV = "SOLANA_RPC_URL"

# ============================================================
# PROGRAM CONFIGURATIONS
# ============================================================

RAYDIUM_CLMM = ProgramConfig(
    name="Raydium CLMM",
    program_id="CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK",
)

# ============================================================
# PROTOCOL CONSTANTS
# ============================================================

TICK_BASE = 1.0001

# Raydium bounds are tighter than Uniswap's +-887272 (Q64.64 instead of Q64.96)
MIN_TICK = -443636
MAX_TICK = 443636
MIN_SQRT_PRICE_X64 = 4295048016
MAX_SQRT_PRICE_X64 = 79226673521066979257578248091
Q64 = 2 ** 64

MIN_TICK_SPACING = 1
MAX_TICK_SPACING = 2 ** 16 - 1

# f64 carries ~15-17 significant digits
MAX_TOKEN_DECIMALS = 19

# ============================================================
# TICK ARRAY GEOMETRY
# ============================================================

TICK_ARRAY_SIZE = 60

# Default bitmap inside PoolState: 16 x u64 = 1024 arrays, 512 per side of array 0
DEFAULT_BITMAP_WORDS = 16
DEFAULT_BITMAP_HALF_WIDTH = 512

# TickArrayBitmapExtension: 14 chunks per side, 8 x u64 = 512 arrays per chunk
EXTENSION_BITMAP_CHUNKS = 14
EXTENSION_CHUNK_WORDS = 8
ARRAYS_PER_EXTENSION_CHUNK = 512

BITMAP_WORD_BITS = 64

# ============================================================
# PDA SEEDS
# ============================================================

TICK_ARRAY_SEED = b"tick_array"
TICK_ARRAY_BITMAP_SEED = b"pool_tick_array_bitmap_extension"
PDA_MARKER = b"ProgramDerivedAddress"
MAX_SEEDS = 16
MAX_SEED_LENGTH = 32
PUBKEY_LENGTH = 32

# ============================================================
# DEFAULT SETTINGS
# ============================================================

DEFAULT_RPC_TIMEOUT = 15.0          # seconds
MAX_ACCOUNTS_PER_REQUEST = 100      # getMultipleAccounts limit
DEFAULT_CURVE_WIDTH = 50            # liquidity curve bar width / bucket count


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_cluster_config(name: str) -> ClusterConfig:
    """Cluster configuration by name ("mainnet-beta", "devnet")."""
    if name not in CLUSTERS:
        raise ValueError(f"Unknown cluster: {name}. Known clusters: {sorted(CLUSTERS)}")
    return CLUSTERS[name]


def get_rpc_url(cluster: str = "mainnet-beta", override: Optional[str] = None) -> str:
    """
    Resolve the RPC url.

    Priority: explicit override, then SOLANA_RPC_URL env variable,
    then the cluster default.
    """
    if override:
        return override
    env_url = os.getenv(RPC_URL_ENV)
    if env_url:
        return env_url
    return get_cluster_config(cluster).rpc_url
