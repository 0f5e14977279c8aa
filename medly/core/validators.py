import re

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_RE = re.compile(r"^\(\d{2}\)\s?\d{4,5}-?\d{4}$")
CEP_RE = re.compile(r"^\d{5}-?\d{3}$")
TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def only_digits(value: str | None) -> str:
    return re.sub(r"\D", "", value or "")


def _cpf_check_digit(digits: str, length: int) -> int:
    total = sum(int(digits[i]) * (length + 1 - i) for i in range(length))
    remainder = (total * 10) % 11
    return 0 if remainder in (10, 11) else remainder


def is_valid_cpf(cpf: str | None) -> bool:
    cleaned = only_digits(cpf)
    if len(cleaned) != 11:
        return False
    if cleaned == cleaned[0] * 11:
        return False
    if _cpf_check_digit(cleaned, 9) != int(cleaned[9]):
        return False
    return _cpf_check_digit(cleaned, 10) == int(cleaned[10])


def is_valid_email(email: str | None) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email.strip()))


def is_valid_phone(phone: str | None) -> bool:
    return bool(phone) and bool(PHONE_RE.match(phone.strip()))


def is_valid_cep(cep: str | None) -> bool:
    return bool(cep) and bool(CEP_RE.match(cep.strip()))


def is_valid_time(value: str | None) -> bool:
    return bool(value) and bool(TIME_RE.match(value))


def password_problems(password: str) -> list[str]:
    problems = []
    if len(password) < 6:
        problems.append("Senha deve ter no mínimo 6 caracteres")
    if not re.search(r"[A-Z]", password):
        problems.append("Senha deve conter pelo menos uma letra maiúscula")
    if not re.search(r"[0-9]", password):
        problems.append("Senha deve conter pelo menos um número")
    return problems
