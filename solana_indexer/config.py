import os
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Iterable, Mapping, Optional, Tuple, Union

from solana_indexer.exceptions import ConfigError
from solana_indexer.utils import is_valid_public_key


DEFAULT_POLL_INTERVAL = 5000  # milliseconds
DEFAULT_BATCH_SIZE = 100
MAX_BATCH_SIZE = 1000  # getSignaturesForAddress limit


class Environment(str, Enum):
    MAINNET = "mainnet"
    DEVNET = "devnet"
    TESTNET = "testnet"
    LOCALNET = "localnet"


class IndexerType(str, Enum):
    ACCOUNT = "account"
    TRANSACTION = "transaction"
    PROGRAM = "program"


def _coerce_enum(enum_cls, value, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ConfigError(f"Invalid {name} {value!r}, expected one of: {allowed}") from None


def _validated_addresses(values: Iterable[str], name: str) -> Tuple[str, ...]:
    if isinstance(values, str):
        values = [values]
    addresses = tuple(values or ())
    invalid = [address for address in addresses if not is_valid_public_key(address)]
    if invalid:
        raise ConfigError(f"Malformed {name}: {invalid}")
    return addresses


@dataclass(frozen=True)
class IndexerConfig:
    """
    Settings shared by every indexing mode.

    Concrete configs are the subclasses below; ``type`` is the discriminant.
    ``poll_interval`` is in milliseconds. Instances are immutable and fully
    validated once constructed.
    """

    type: ClassVar[IndexerType]

    env: Environment
    rpc_url: Optional[str] = None
    poll_interval: int = DEFAULT_POLL_INTERVAL
    batch_size: int = DEFAULT_BATCH_SIZE
    # Skip a timer tick while the previous pass is still running.
    skip_overlapping_passes: bool = False

    def __post_init__(self) -> None:
        if type(self) is IndexerConfig:
            raise ConfigError("Use AccountIndexerConfig, TransactionIndexerConfig or ProgramIndexerConfig")

        object.__setattr__(self, "env", _coerce_enum(Environment, self.env, "environment"))

        if self.rpc_url is not None and not self.rpc_url.strip():
            object.__setattr__(self, "rpc_url", None)

        if isinstance(self.poll_interval, bool) or not isinstance(self.poll_interval, int) or self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be a positive number of milliseconds, got {self.poll_interval!r}")

        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int):
            raise ConfigError(f"batch_size must be an integer, got {self.batch_size!r}")
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ConfigError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {self.batch_size}")

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval / 1000


@dataclass(frozen=True)
class AccountIndexerConfig(IndexerConfig):
    type: ClassVar[IndexerType] = IndexerType.ACCOUNT

    accounts: Tuple[str, ...] = ()
    # Read by custom processors only, through ProcessorContext.config.
    include_token_accounts: bool = False

    def __post_init__(self) -> None:
        super().__post_init__()
        accounts = _validated_addresses(self.accounts, "account address")
        if not accounts:
            raise ConfigError("Account indexing requires at least one account address")
        object.__setattr__(self, "accounts", accounts)


@dataclass(frozen=True)
class TransactionIndexerConfig(IndexerConfig):
    type: ClassVar[IndexerType] = IndexerType.TRANSACTION

    accounts: Tuple[str, ...] = ()
    # Read by custom processors only, through ProcessorContext.config.
    programs: Tuple[str, ...] = ()
    # One cursor per address instead of a single cursor shared by all addresses.
    per_address_cursor: bool = False

    def __post_init__(self) -> None:
        super().__post_init__()
        object.__setattr__(self, "accounts", _validated_addresses(self.accounts, "account address"))
        object.__setattr__(self, "programs", _validated_addresses(self.programs, "program id"))


@dataclass(frozen=True)
class ProgramIndexerConfig(IndexerConfig):
    type: ClassVar[IndexerType] = IndexerType.PROGRAM

    program_id: str = ""
    # Read by custom processors only, through ProcessorContext.config.
    include_inner_instructions: bool = False

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.program_id:
            raise ConfigError("Program indexing requires a program_id")
        _validated_addresses([self.program_id], "program id")


AnyIndexerConfig = Union[AccountIndexerConfig, TransactionIndexerConfig, ProgramIndexerConfig]

def _split_list(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class StorageSettings:
    """Where the entry point persists records."""

    backend: str = "json"
    json_path: str = "./solixdb-data.json"
    parquet_dir: str = "./solixdb-data"
    database_url: Optional[str] = None
    redis_url: str = "redis://localhost:6379/0"
    redis_mode: str = "list"
    redis_key: str = "solixdb-events"
    mongodb_url: Optional[str] = None
    mongodb_db: str = "solixdb"
    mongodb_collection: str = "indexed_data"

    BACKENDS: ClassVar[Tuple[str, ...]] = ("memory", "json", "parquet", "postgres", "redis", "mongo")

    def __post_init__(self) -> None:
        if self.backend not in self.BACKENDS:
            raise ConfigError(f"Unknown storage backend {self.backend!r}, expected one of: {', '.join(self.BACKENDS)}")
        if self.backend == "postgres" and not self.database_url:
            raise ConfigError("DATABASE_URL is required for the postgres storage backend")
        if self.backend == "mongo" and not self.mongodb_url:
            raise ConfigError("MONGODB_URL is required for the mongo storage backend")
        if self.redis_mode not in ("list", "publish"):
            raise ConfigError(f"REDIS_MODE must be 'list' or 'publish', got {self.redis_mode!r}")


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> AnyIndexerConfig:
    """Build the indexer config for INDEXER_TYPE from environment variables."""
    environ = os.environ if environ is None else environ

    indexer_type = _coerce_enum(IndexerType, environ.get("INDEXER_TYPE", "transaction").strip().lower(), "indexer type")
    common = {
        "env": environ.get("SOLANA_ENV", "devnet").strip().lower(),
        "rpc_url": environ.get("RPC_URL") or None,
        "poll_interval": _parse_int(environ, "POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
        "batch_size": _parse_int(environ, "BATCH_SIZE", DEFAULT_BATCH_SIZE),
        "skip_overlapping_passes": parse_bool(environ.get("SKIP_OVERLAPPING_PASSES")),
    }

    if indexer_type is IndexerType.ACCOUNT:
        return AccountIndexerConfig(
            accounts=_split_list(environ.get("ACCOUNTS")),
            include_token_accounts=parse_bool(environ.get("INCLUDE_TOKEN_ACCOUNTS")),
            **common,
        )
    if indexer_type is IndexerType.TRANSACTION:
        return TransactionIndexerConfig(
            accounts=_split_list(environ.get("ACCOUNTS")),
            programs=_split_list(environ.get("PROGRAMS")),
            per_address_cursor=parse_bool(environ.get("PER_ADDRESS_CURSOR")),
            **common,
        )
    return ProgramIndexerConfig(
        program_id=environ.get("PROGRAM_ID", "").strip(),
        include_inner_instructions=parse_bool(environ.get("INCLUDE_INNER_INSTRUCTIONS")),
        **common,
    )


def storage_settings_from_env(environ: Optional[Mapping[str, str]] = None) -> StorageSettings:
    environ = os.environ if environ is None else environ
    defaults = StorageSettings()
    return StorageSettings(
        backend=environ.get("STORAGE", defaults.backend).strip().lower(),
        json_path=environ.get("JSON_STORAGE_PATH", defaults.json_path),
        parquet_dir=environ.get("PARQUET_DIR", defaults.parquet_dir),
        database_url=environ.get("DATABASE_URL") or None,
        redis_url=environ.get("REDIS_URL", defaults.redis_url),
        redis_mode=environ.get("REDIS_MODE", defaults.redis_mode).strip().lower(),
        redis_key=environ.get("REDIS_KEY", defaults.redis_key),
        mongodb_url=environ.get("MONGODB_URL") or None,
        mongodb_db=environ.get("MONGODB_DB", defaults.mongodb_db),
        mongodb_collection=environ.get("MONGODB_COLLECTION", defaults.mongodb_collection),
    )
