# ============================================================================
# Exchange Permutation Harness v1.0.0
# Harness Context - Owner Pools, Key Pairs and Token Registry
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: Read-only context handed to every scenario run
#
# SOVEREIGN MANDATE:
#   - Context is built once per run and never mutated by scenarios
#   - Holds no random state; key pairs come from each scenario's generator
#   - Token symbols resolve to exactly one address and token id
#
# Error Codes:
#   - PERM-CTX-001: Not enough accounts to build the context
#   - PERM-TOK-001: Unknown token
#
# ============================================================================

import hashlib
import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

ERROR_CONTEXT_ACCOUNTS = "PERM-CTX-001"
ERROR_UNKNOWN_TOKEN = "PERM-TOK-001"

# Accounts are split: 1 deployer, 4 state owners, 5 wallet owners, 10 order owners
MIN_ACCOUNTS = 20

# Scalar field of the SNARK curve the exchange signs against
SNARK_SCALAR_FIELD = int(
    "21888242871839275222246405745257275088548364400416034343698204186575808495617"
)

ZERO_ADDRESS = "0x" + "0" * 40

# Symbol -> token id; ETH is always token 0
DEFAULT_TOKENS: Tuple[str, ...] = ("ETH", "LRC", "WETH", "GTO")


# ============================================================================
# Key Pairs
# ============================================================================

@dataclass(frozen=True)
class KeyPair:
    """EdDSA-style key pair used to register an account."""
    secret_key: int
    public_key_x: int
    public_key_y: int


class KeyPairGenerator:
    """
    Draws key pairs from a seeded generator.

    The public point is derived from a SHA-512 digest of the secret; real
    curve arithmetic belongs to the exchange's signing collaborator.
    """

    def __init__(self, rng: random.Random):
        self._rng = rng

    def generate(self) -> KeyPair:
        secret_key = self._rng.randrange(1, SNARK_SCALAR_FIELD)
        digest = hashlib.sha512(secret_key.to_bytes(32, "big")).digest()
        return KeyPair(
            secret_key=secret_key,
            public_key_x=int.from_bytes(digest[:32], "big") % SNARK_SCALAR_FIELD,
            public_key_y=int.from_bytes(digest[32:], "big") % SNARK_SCALAR_FIELD,
        )


# ============================================================================
# Token Registry
# ============================================================================

@dataclass(frozen=True)
class TokenInfo:
    symbol: str
    address: str
    token_id: int


class TokenRegistry:
    """
    Resolves token symbols to addresses and token ids.

    Example Usage:
        tokens = TokenRegistry()
        tokens.get_token_address("LRC")   # '0x...'
        tokens.resolve("0x...").symbol    # 'LRC'
    """

    def __init__(self, symbols: Iterable[str] = DEFAULT_TOKENS):
        self._by_symbol: Dict[str, TokenInfo] = {}
        self._by_address: Dict[str, TokenInfo] = {}
        for token_id, symbol in enumerate(symbols):
            symbol = symbol.upper()
            if symbol == "ETH":
                address = ZERO_ADDRESS
            else:
                address = "0x" + hashlib.sha256(symbol.encode("utf-8")).hexdigest()[-40:]
            info = TokenInfo(symbol=symbol, address=address, token_id=token_id)
            self._by_symbol[symbol] = info
            self._by_address[address] = info

    def resolve(self, token: str) -> TokenInfo:
        """
        Resolve a symbol or an address.

        Raises:
            ValueError: If the token is not registered (PERM-TOK-001)
        """
        info = self._by_symbol.get(token.upper()) or self._by_address.get(token.lower())
        if info is None:
            raise ValueError(f"[{ERROR_UNKNOWN_TOKEN}] Unknown token: {token}")
        return info

    def has_token(self, token: str) -> bool:
        try:
            self.resolve(token)
        except ValueError:
            return False
        return True

    def get_token_address(self, symbol: str) -> str:
        return self.resolve(symbol).address

    def get_token_id(self, token: str) -> int:
        return self.resolve(token).token_id

    @property
    def symbols(self) -> List[str]:
        return list(self._by_symbol)


# ============================================================================
# Harness Context
# ============================================================================

def generate_accounts(rng: random.Random, count: int = MIN_ACCOUNTS) -> List[str]:
    """Generate `count` distinct hex addresses from the seeded generator."""
    accounts: List[str] = []
    seen = set()
    while len(accounts) < count:
        address = "0x" + format(rng.getrandbits(160), "040x")
        if address not in seen and address != ZERO_ADDRESS:
            seen.add(address)
            accounts.append(address)
    return accounts


@dataclass(frozen=True)
class HarnessContext:
    """
    Read-only test context shared by all scenarios of a run.

    Reliability Level: SOVEREIGN TIER
    Input Constraints: Built through from_accounts()
    Side Effects: None
    """
    deployer: str
    state_owners: Tuple[str, ...]
    wallet_owners: Tuple[str, ...]
    order_owners: Tuple[str, ...]
    tokens: TokenRegistry = field(compare=False)

    @classmethod
    def from_accounts(
        cls,
        accounts: Sequence[str],
        tokens: Optional[TokenRegistry] = None,
    ) -> "HarnessContext":
        """
        Split the runner's account list into the context's pools.

        Raises:
            ValueError: If fewer than MIN_ACCOUNTS accounts are supplied (PERM-CTX-001)
        """
        if len(accounts) < MIN_ACCOUNTS:
            raise ValueError(
                f"[{ERROR_CONTEXT_ACCOUNTS}] At least {MIN_ACCOUNTS} accounts required, "
                f"got {len(accounts)}"
            )

        context = cls(
            deployer=accounts[0],
            state_owners=tuple(accounts[1:5]),
            wallet_owners=tuple(accounts[5:10]),
            order_owners=tuple(accounts[10:]),
            tokens=tokens or TokenRegistry(),
        )

        logger.debug(
            f"[CTX] Harness context built | "
            f"state_owners={len(context.state_owners)} | "
            f"wallet_owners={len(context.wallet_owners)} | "
            f"order_owners={len(context.order_owners)} | "
            f"tokens={context.tokens.symbols}"
        )
        return context
