"""
BankState — Модели состояния custodial bank

Immutable Pydantic модели:
- BankConfig: неизменяемая конфигурация (cap, threshold, native price source)
- AssetDescriptor: запись реестра активов
- PauseState: состояние системы ACTIVE/PAUSED
"""

import os
from enum import Enum
from typing import Final, Mapping, Optional

from pydantic import BaseModel, Field

from .units import CANONICAL_DECIMALS, MAX_NATIVE_DECIMALS

# =============================================================================
# КОНСТАНТЫ
# =============================================================================

# Зарезервированный идентификатор нативного актива платформы (zero address)
NATIVE_ASSET_ID: Final[str] = "0x0000000000000000000000000000000000000000"

# Максимально допустимый возраст цены (секунды)
DEFAULT_STALENESS_WINDOW_SEC: Final[int] = 3600

# Префикс переменных окружения для BankConfig.from_env
ENV_PREFIX: Final[str] = "CUSTODY_LEDGER_"


# =============================================================================
# ENUMS
# =============================================================================


class PauseState(str, Enum):
    """Состояние системы. Deposit/withdraw разрешены только в ACTIVE."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"


class Capability(str, Enum):
    """Capabilities, проверяемые через injected AccessControl."""

    ASSET_MANAGER = "ASSET_MANAGER"
    PAUSER = "PAUSER"


# =============================================================================
# CONFIG
# =============================================================================


class BankConfig(BaseModel):
    """
    Неизменяемая конфигурация bank.

    bank_cap_usd и withdrawal_threshold_usd заданы в canonical precision
    (6 дробных знаков): 1_000_000 == $1.
    """

    bank_cap_usd: int = Field(..., gt=0, description="Глобальный cap custody (USD, canonical)")
    withdrawal_threshold_usd: int = Field(
        ..., gt=0, description="Потолок одного вывода (USD, canonical)"
    )
    native_price_source_id: str = Field(
        ..., min_length=1, description="Price source нативного актива"
    )
    staleness_window_sec: int = Field(
        DEFAULT_STALENESS_WINDOW_SEC, gt=0, description="Окно устаревания цены (секунды)"
    )

    model_config = {"frozen": True}

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "BankConfig":
        """
        Сборка конфигурации из переменных окружения.

        Переменные: {prefix}BANK_CAP_USD, {prefix}WITHDRAWAL_THRESHOLD_USD,
        {prefix}NATIVE_PRICE_SOURCE_ID, {prefix}STALENESS_WINDOW_SEC (optional).

        Raises:
            KeyError: Если обязательная переменная не задана
            pydantic.ValidationError: Если значения невалидны
        """
        env = os.environ if environ is None else environ
        data = {
            "bank_cap_usd": env[f"{prefix}BANK_CAP_USD"],
            "withdrawal_threshold_usd": env[f"{prefix}WITHDRAWAL_THRESHOLD_USD"],
            "native_price_source_id": env[f"{prefix}NATIVE_PRICE_SOURCE_ID"],
        }
        staleness = env.get(f"{prefix}STALENESS_WINDOW_SEC")
        if staleness is not None:
            data["staleness_window_sec"] = staleness
        return cls.model_validate(data)


# =============================================================================
# ASSET DESCRIPTOR
# =============================================================================


class AssetDescriptor(BaseModel):
    """
    Запись реестра активов.

    Soft delete: active=False, запись и счетчики сохраняются.
    """

    asset_id: str = Field(..., min_length=1, description="Идентификатор актива")
    active: bool = Field(..., description="Актив принимается для deposit/withdraw")
    native_decimals: int = Field(
        ..., ge=0, le=MAX_NATIVE_DECIMALS, description="Native precision актива"
    )
    price_source_id: str = Field(..., min_length=1, description="Привязанный price source")
    deposit_count: int = Field(0, ge=0, description="Количество депозитов")
    withdrawal_count: int = Field(0, ge=0, description="Количество выводов")

    model_config = {"frozen": True}

    @property
    def is_native(self) -> bool:
        return self.asset_id == NATIVE_ASSET_ID

    @property
    def is_exact(self) -> bool:
        """Нормализация без потерь (native_decimals <= canonical)."""
        return self.native_decimals <= CANONICAL_DECIMALS
