"""
pt-BR formatting helpers for contract placeholders.

Brazilian documents (CPF/CNPJ/CEP), phone masks, number formatting with
"." thousands and "," decimals, and currency amounts written in full
("valor por extenso").
"""

import math
import re
from datetime import date, datetime
from typing import Union

_NON_DIGITS = re.compile(r"\D+")

_UNITS = ["", "um", "dois", "tres", "quatro", "cinco", "seis", "sete", "oito", "nove"]
_TEENS = [
    "dez", "onze", "doze", "treze", "quatorze",
    "quinze", "dezesseis", "dezessete", "dezoito", "dezenove",
]
_TENS = [
    "", "dez", "vinte", "trinta", "quarenta",
    "cinquenta", "sessenta", "setenta", "oitenta", "noventa",
]
_HUNDREDS = [
    "", "cento", "duzentos", "trezentos", "quatrocentos",
    "quinhentos", "seiscentos", "setecentos", "oitocentos", "novecentos",
]
_SCALE_SINGULAR = [
    "", "mil", "milhao", "bilhao", "trilhao", "quatrilhao",
    "quintilhao", "sextilhao", "septilhao", "octilhao", "nonilhao", "decilhao",
]
_SCALE_PLURAL = [
    "", "mil", "milhoes", "bilhoes", "trilhoes", "quatrilhoes",
    "quintilhoes", "sextilhoes", "septilhoes", "octilhoes", "nonilhoes", "decilhoes",
]
# Largest amount with a scale name (just under one thousand decilhoes)
MAX_AMOUNT_IN_WORDS = 1000 ** len(_SCALE_SINGULAR) - 1


def only_digits(value: str) -> str:
    return _NON_DIGITS.sub("", value or "")


def format_cpf(value: str) -> str:
    """000.000.000-00, applied progressively to partial input."""
    digits = only_digits(value)[:11]
    parts = [digits[0:3], digits[3:6], digits[6:9]]
    head = ".".join(p for p in parts if p)
    tail = digits[9:11]
    return f"{head}-{tail}" if tail else head


def format_cnpj(value: str) -> str:
    """00.000.000/0000-00, applied progressively to partial input."""
    digits = only_digits(value)[:14]
    head = ".".join(p for p in (digits[0:2], digits[2:5], digits[5:8]) if p)
    if len(digits) > 8:
        head = f"{head}/{digits[8:12]}"
    if len(digits) > 12:
        head = f"{head}-{digits[12:14]}"
    return head


def format_document(value: str) -> str:
    """Format as CNPJ when the value has 14 digits, CPF otherwise."""
    digits = only_digits(value)
    if len(digits) == 14:
        return format_cnpj(digits)
    if len(digits) == 11:
        return format_cpf(digits)
    return value or ""


def format_cep(value: str) -> str:
    digits = only_digits(value)[:8]
    if len(digits) <= 5:
        return digits
    return f"{digits[:5]}-{digits[5:]}"


def format_phone(value: str) -> str:
    """(00) 0000-0000 for landlines, (00) 00000-0000 for mobiles."""
    digits = only_digits(value)
    if len(digits) > 11 and digits.startswith("55"):
        digits = digits[2:]  # +55 country code
    digits = digits[:11]
    if len(digits) <= 2:
        return digits

    area, rest = digits[:2], digits[2:]
    if len(rest) <= 4:
        return f"({area}) {rest}"
    split = 4 if len(rest) <= 8 else 5
    return f"({area}) {rest[:split]}-{rest[split:]}"


def format_integer_ptbr(value: Union[int, float]) -> str:
    """1234567 -> '1.234.567'."""
    return f"{int(value):,}".replace(",", ".")


def format_decimal_ptbr(value: float, places: int = 2) -> str:
    """1234.5 -> '1.234,50'."""
    formatted = f"{value:,.{places}f}"
    return formatted.translate(str.maketrans({",": ".", ".": ","}))


def format_date_ptbr(value: Union[date, datetime]) -> str:
    return value.strftime("%d/%m/%Y")


def _below_thousand(n: int) -> str:
    if n == 0:
        return ""
    if n == 100:
        return "cem"

    result = _HUNDREDS[n // 100]
    rest = n % 100
    if rest:
        if result:
            result += " e "
        if rest < 10:
            result += _UNITS[rest]
        elif rest < 20:
            result += _TEENS[rest - 10]
        else:
            result += _TENS[rest // 10]
            if rest % 10:
                result += f" e {_UNITS[rest % 10]}"
    return result


def number_to_words_ptbr(value: Union[int, float]) -> str:
    """Write a currency amount in full, truncating cents.

    Raises ValueError for non-finite amounts and for amounts beyond the
    decilhao scale.

    >>> number_to_words_ptbr(1500)
    'mil e quinhentos reais'
    """
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Valor nao numerico: {value}")
    amount = int(abs(value))
    if amount > MAX_AMOUNT_IN_WORDS:
        raise ValueError(f"Valor grande demais para escrever por extenso: {amount}")
    if amount == 0:
        return "zero real"
    if amount == 1:
        return "um real"

    groups = []  # (group value, text), most significant last
    remaining, index = amount, 0
    while remaining > 0:
        group_value = remaining % 1000
        if group_value:
            text = _below_thousand(group_value)
            if index == 1:
                text = "mil" if group_value == 1 else f"{text} mil"
            elif index >= 2:
                text = f"um {_SCALE_SINGULAR[index]}" if group_value == 1 else f"{text} {_SCALE_PLURAL[index]}"
            groups.append((group_value, text))
        remaining //= 1000
        index += 1
    groups.reverse()

    words = ""
    for position, (_, text) in enumerate(groups):
        words += text
        if position + 1 < len(groups):
            next_value = groups[position + 1][0]
            words += " e " if next_value < 100 or next_value % 100 == 0 else " "

    use_de = amount >= 1_000_000 and amount % 1_000_000 == 0
    return f"{words} {'de ' if use_de else ''}reais"
