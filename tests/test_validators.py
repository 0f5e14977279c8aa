import unittest

from medly.core.validators import (
    is_valid_cep,
    is_valid_cpf,
    is_valid_email,
    is_valid_phone,
    is_valid_time,
    only_digits,
    password_problems,
)


class CpfTests(unittest.TestCase):
    def test_valid_cpfs(self):
        for cpf in ("529.982.247-25", "11144477735", "123.456.789-09", "12345678062"):
            self.assertTrue(is_valid_cpf(cpf), cpf)

    def test_invalid_cpfs(self):
        for cpf in ("111.111.111-11", "52998224724", "123", "", None, "5299822472a"):
            self.assertFalse(is_valid_cpf(cpf), cpf)

    def test_only_digits(self):
        self.assertEqual(only_digits("529.982.247-25"), "52998224725")
        self.assertEqual(only_digits(None), "")


class ContactTests(unittest.TestCase):
    def test_phone(self):
        self.assertTrue(is_valid_phone("(11) 99999-9999"))
        self.assertTrue(is_valid_phone("(11)3333-4444"))
        self.assertFalse(is_valid_phone("11 99999-9999"))

    def test_cep(self):
        self.assertTrue(is_valid_cep("01310-100"))
        self.assertTrue(is_valid_cep("01310100"))
        self.assertFalse(is_valid_cep("0131-0100"))

    def test_email(self):
        self.assertTrue(is_valid_email("ana@medly.com.br"))
        self.assertFalse(is_valid_email("ana@"))
        self.assertFalse(is_valid_email(None))

    def test_time(self):
        self.assertTrue(is_valid_time("07:00"))
        self.assertTrue(is_valid_time("23:59"))
        self.assertFalse(is_valid_time("24:00"))
        self.assertFalse(is_valid_time("7:00"))


class PasswordTests(unittest.TestCase):
    def test_strong_password(self):
        self.assertEqual(password_problems("Senha123"), [])

    def test_weak_password(self):
        problems = password_problems("abc")
        self.assertEqual(len(problems), 3)
        self.assertIn("Senha deve ter no mínimo 6 caracteres", problems)
