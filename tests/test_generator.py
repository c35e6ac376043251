"""Tests for portunus.generate_password."""

import re

from portunus import generate_password

URLSAFE = re.compile(r"^[A-Za-z0-9_-]{16}$")


class TestGeneratePassword:
    def test_length_and_alphabet(self):
        for _ in range(200):
            assert URLSAFE.match(generate_password())

    def test_no_padding(self):
        assert "=" not in generate_password()

    def test_successive_calls_differ(self):
        passwords = {generate_password() for _ in range(100)}
        assert len(passwords) == 100

