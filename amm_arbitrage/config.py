"""
Engine configuration: pydantic schema, YAML loading and environment overrides.

Any field can be overridden with an ``ARB_`` prefixed environment variable
(``ARB_MAX_HOPS=4``); a ``.env`` file in the working directory is loaded
first. Invalid configuration raises ``ConfigurationError``.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .cost_model import CostModel
from .exceptions import ConfigurationError
from .types import (
    ConcentratedLiquidityPool,
    ConstantProductPool,
    Pool,
    StableSwapPool,
    Token,
)
from .utils import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "ARB_"


class EngineConfig(BaseModel):
    """Runtime configuration of the detection engine."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Detection and sizing
    max_hops: int = Field(default=3, ge=2, le=6, description="Longest cycle searched")
    min_profit_threshold: int = Field(
        default=1, gt=0, description="Minimum net profit in start-token units"
    )
    liquidity_cap_fraction: float = Field(
        default=0.9, gt=0, le=1, description="Max share of a hop's input reserve"
    )
    staleness_window_sec: float = Field(default=12.0, gt=0)
    optimizer_tolerance: int = Field(default=1, ge=1)
    max_optimizer_iterations: int = Field(default=100, ge=1)
    base_tokens: List[str] = Field(
        default_factory=list, description="Start tokens; empty means every token"
    )

    # Costs
    loan_premium_bps: int = Field(default=5, ge=0, lt=10_000)
    settlement_cost: int = Field(default=0, ge=0)

    # Execution
    slippage_tolerance_bps: int = Field(default=50, ge=0, lt=10_000)
    dry_run: bool = True
    enable_execution: bool = False
    max_plans_per_pass: int = Field(default=1, ge=0)

    # Loop
    poll_interval_sec: float = Field(default=6.0, gt=0)
    once: bool = False
    workers: int = Field(default=1, ge=1, le=64)
    metrics_port: Optional[int] = Field(default=None, ge=1, le=65535)

    @field_validator("base_tokens", mode="before")
    @classmethod
    def split_base_tokens(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    def cost_model(self) -> CostModel:
        return CostModel(
            loan_premium_bps=self.loan_premium_bps,
            settlement_cost=self.settlement_cost,
            min_profit_threshold=self.min_profit_threshold,
        )


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse a YAML mapping."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if config_dict is None:
        return {}
    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {config_path}")
    return config_dict


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Collect ``ARB_*`` variables that name an ``EngineConfig`` field."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for name in EngineConfig.model_fields:
        value = environ.get(ENV_PREFIX + name.upper())
        if value is not None and value != "":
            overrides[name] = value
    return overrides


def build_config(
    values: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EngineConfig:
    """Validate raw values plus environment overrides into an EngineConfig."""
    merged = dict(values or {})
    merged.update(env_overrides(environ))
    try:
        return EngineConfig(**merged)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ConfigurationError(
            "Invalid engine configuration: " + "; ".join(errors),
            details={"errors": errors},
        ) from e


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
    use_dotenv: bool = True,
) -> EngineConfig:
    """
    Load engine configuration.

    Args:
        config_path: YAML file; None uses defaults plus environment
        environ: Environment mapping (defaults to os.environ)
        use_dotenv: Load a local .env file before reading the environment

    Raises:
        ConfigurationError: Missing file, bad YAML or invalid values
    """
    if use_dotenv and environ is None:
        load_dotenv()

    values: Dict[str, Any] = {}
    if config_path is not None:
        raw = load_yaml_config(config_path)
        values = raw.get("engine", raw)

    config = build_config(values, environ)
    logger.debug(f"Loaded engine config: {config.model_dump()}")
    return config


# === Pool fixture files ===


class TokenSpec(BaseModel):
    address: str
    decimals: int = Field(default=18, ge=0, le=77)


class PoolSpec(BaseModel):
    """One pool entry of a pools YAML file."""

    model_config = ConfigDict(extra="forbid")

    id: str
    type: Literal["constant_product", "concentrated_liquidity", "stable_swap"] = (
        "constant_product"
    )
    token0: str
    token1: str
    fee_bps: Optional[int] = Field(default=None, ge=0, lt=10_000)
    dex: Optional[str] = None
    reserve0: Optional[int] = None
    reserve1: Optional[int] = None
    liquidity: Optional[int] = None
    sqrt_price_x96: Optional[int] = None
    balance0: Optional[int] = None
    balance1: Optional[int] = None
    amplification: Optional[int] = None

    def _require(self, *names: str) -> None:
        missing = [n for n in names if getattr(self, n) is None]
        if missing:
            raise ConfigurationError(
                f"Pool {self.id} ({self.type}) is missing {', '.join(missing)}"
            )

    def to_pool(self, tokens: Dict[str, Token]) -> Pool:
        try:
            token0, token1 = tokens[self.token0], tokens[self.token1]
        except KeyError as e:
            raise ConfigurationError(f"Pool {self.id} uses unknown token {e}") from e

        extra: Dict[str, Any] = {}
        if self.fee_bps is not None:
            extra["fee_bps"] = self.fee_bps
        if self.dex is not None:
            extra["dex"] = self.dex

        if self.type == "constant_product":
            self._require("reserve0", "reserve1")
            return ConstantProductPool(
                self.id, token0, token1, self.reserve0, self.reserve1, **extra
            )
        if self.type == "concentrated_liquidity":
            self._require("liquidity", "sqrt_price_x96")
            return ConcentratedLiquidityPool(
                self.id, token0, token1, self.liquidity, self.sqrt_price_x96, **extra
            )
        self._require("balance0", "balance1")
        if self.amplification is not None:
            extra["amplification"] = self.amplification
        return StableSwapPool(
            self.id, token0, token1, self.balance0, self.balance1, **extra
        )


class PoolFile(BaseModel):
    tokens: Dict[str, TokenSpec]
    pools: List[PoolSpec] = Field(default_factory=list)


def parse_pools(data: Dict[str, Any]) -> List[Pool]:
    """Build pool objects from a ``{tokens: ..., pools: [...]}`` mapping."""
    try:
        spec = PoolFile(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid pool file: {e}") from e

    tokens = {
        symbol: Token(address=t.address, symbol=symbol, decimals=t.decimals)
        for symbol, t in spec.tokens.items()
    }
    return [pool.to_pool(tokens) for pool in spec.pools]


def load_pools(path: Union[str, Path]) -> List[Pool]:
    """Load a pools YAML file, e.g. for paper runs of the CLI."""
    pools = parse_pools(load_yaml_config(path))
    logger.info(f"Loaded {len(pools)} pools from {path}")
    return pools
