"""
Logging configuration custody ledger.

Модули пишут через logging.getLogger(__name__); при импорте ничего не
настраивается. configure_logging() вызывает встраивающее приложение.

Переменные окружения (префикс как у BankConfig.from_env):
- CUSTODY_LEDGER_LOG_LEVEL: уровень (default INFO)
- CUSTODY_LEDGER_LOG_JSON: JSON lines для агрегаторов логов
"""

import json
import logging
import os
import sys
from typing import Final, Mapping, Optional, Tuple

from custody_ledger.core.domain.bank_state import ENV_PREFIX

# Поля, которые bank передаёт через extra=: операция, владелец, актив,
# код ошибки и sequence события
CONTEXT_FIELDS: Final[Tuple[str, ...]] = ("operation", "owner", "asset_id", "code", "sequence")

_TRUTHY: Final[Tuple[str, ...]] = ("1", "true", "yes")


class JsonFormatter(logging.Formatter):
    """Одна запись лога — одна JSON строка с контекстом операции."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info and record.exc_info[0]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(
    level: Optional[str] = None,
    use_json: Optional[bool] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> None:
    """
    Настройка root logger: единственный stdout handler.

    Явные аргументы имеют приоритет над окружением.
    """
    env = os.environ if environ is None else environ
    level_name = (level or env.get(f"{ENV_PREFIX}LOG_LEVEL") or "INFO").upper()
    resolved_level = getattr(logging, level_name, logging.INFO)
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO

    if use_json is None:
        use_json = env.get(f"{ENV_PREFIX}LOG_JSON", "").lower() in _TRUTHY

    root = logging.getLogger()
    root.setLevel(resolved_level)
    # Повторная настройка заменяет handler, а не дублирует
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter()
        if use_json
        else logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root.addHandler(handler)
