"""
JSON Schema contracts custody ledger

Контракты на границах bank:
- price_reading.json: сырой ответ внешнего price source (проверяется до
  Pydantic модели, знак цены проверяет oracle adapter)
- observation.json: payload события журнала (проверяется при emit)

Схемы лежат в schema/ рядом с модулем и устанавливаются как package data.
"""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from jsonschema import Draft202012Validator, SchemaError
from jsonschema.exceptions import best_match

SCHEMA_DIR = Path(__file__).parent / "schema"


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """Загрузка и meta-валидация схем с кэшем по имени."""

    def __init__(self, schema_dir: Optional[Path] = None):
        self._schema_dir = schema_dir or SCHEMA_DIR
        if not self._schema_dir.is_dir():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Args:
            schema_name: Имя схемы без расширения (например, 'observation')

        Raises:
            FileNotFoundError: Если файл схемы не найден
            ValueError: Если файл не является валидной JSON Schema
        """
        cached = self._schemas.get(schema_name)
        if cached is not None:
            return cached

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.is_file():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        try:
            Draft202012Validator.check_schema(schema)
        except SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_path.name}: {e}") from e

        self._schemas[schema_name] = schema
        return schema


_default_loader: Optional[SchemaLoader] = None


def _loader() -> SchemaLoader:
    global _default_loader
    if _default_loader is None:
        _default_loader = SchemaLoader()
    return _default_loader


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator:
    """
    Валидатор payload против одной схемы.

    При нескольких нарушениях (например, oneOf по типам событий) поднимается
    наиболее релевантное, а не первое найденное.
    """

    schema_name = ""

    def __init__(self, loader: Optional[SchemaLoader] = None):
        schema = (loader or _loader()).load_schema(self.schema_name)
        self._validator = Draft202012Validator(schema)

    def validate(self, data: Mapping[str, Any]) -> None:
        """
        Raises:
            jsonschema.ValidationError: Если payload нарушает контракт
        """
        error = best_match(self._validator.iter_errors(data))
        if error is not None:
            raise error


class PriceReadingValidator(ContractValidator):
    schema_name = "price_reading"


class ObservationValidator(ContractValidator):
    schema_name = "observation"
