"""
Ledger Errors — таксономия ошибок custodial ledger

Все ошибки терминальны для операции: никаких внутренних retry, полный откат
состояния, вызывающему возвращается различимый тип ошибки.

Категории:
- InputError: некорректные входные данные (amount, decimals, overflow)
- PolicyError: нарушение политики (asset, pause, cap, threshold, balance, access)
- OracleError: отказ в обслуживании из-за невалидной цены
- TransferError: отказ внешнего transfer collaborator
"""


class LedgerError(Exception):
    """Базовая ошибка custodial ledger. `code` стабилен и пригоден для логов."""

    code = "LEDGER_ERROR"


# =============================================================================
# INPUT
# =============================================================================


class InputError(LedgerError):
    code = "INPUT_ERROR"


class AmountMustBeGreaterThanZero(InputError):
    code = "AMOUNT_MUST_BE_GREATER_THAN_ZERO"


class InvalidDecimals(InputError):
    code = "INVALID_DECIMALS"


class ArithmeticOverflow(InputError):
    """
    Результат выходит за пределы 256-битного беззнакового диапазона.

    Никогда не заворачивается (wrap-around): операция отклоняется целиком.
    """

    code = "ARITHMETIC_OVERFLOW"


# =============================================================================
# POLICY
# =============================================================================


class PolicyError(LedgerError):
    code = "POLICY_ERROR"


class TokenNotSupported(PolicyError):
    code = "TOKEN_NOT_SUPPORTED"


class ContractPaused(PolicyError):
    code = "CONTRACT_PAUSED"


class ContractNotPaused(PolicyError):
    code = "CONTRACT_NOT_PAUSED"


class DepositExceedsBankCap(PolicyError):
    code = "DEPOSIT_EXCEEDS_BANK_CAP"


class WithdrawalExceedsThreshold(PolicyError):
    code = "WITHDRAWAL_EXCEEDS_THRESHOLD"


class InsufficientBalance(PolicyError):
    code = "INSUFFICIENT_BALANCE"


class AccessDenied(PolicyError):
    code = "ACCESS_DENIED"


class ReentrantCall(PolicyError):
    """Вложенный вызов guarded операции во время внешнего transfer."""

    code = "REENTRANT_CALL"


# =============================================================================
# ORACLE
# =============================================================================


class OracleError(LedgerError):
    code = "ORACLE_ERROR"


class InvalidPriceFeed(OracleError):
    code = "INVALID_PRICE_FEED"


class InvalidPrice(OracleError):
    code = "INVALID_PRICE"


class StalePrice(OracleError):
    code = "STALE_PRICE"


# =============================================================================
# TRANSFER
# =============================================================================


class TransferError(LedgerError):
    code = "TRANSFER_ERROR"


class TransferFailed(TransferError):
    code = "TRANSFER_FAILED"
