"""
Tests for key and IV derivation.
"""

import hashlib

from django.test import SimpleTestCase

from data_protection.core.encryption.exceptions import ConfigurationError
from data_protection.core.encryption.keys import (
    IV_LABEL,
    KEY_LABEL,
    KEY_SIZE,
    derive,
    scoped_key,
    scoped_material,
)

SECRET = 'q45knelfjasldfkjaherltkqu43lq345asdf5'


class DeriveTests(SimpleTestCase):
    """Test PBKDF2-HMAC-SHA512 derivation."""

    def test_matches_pbkdf2_hmac_sha512(self):
        """Derivation is plain PBKDF2 with SHA-512 and the label as salt."""
        expected = hashlib.pbkdf2_hmac('sha512', SECRET.encode('utf-8'), b'DatabaseKey', 1000, 32)

        self.assertEqual(derive(SECRET, KEY_LABEL, 1000, KEY_SIZE), expected)

    def test_iv_label(self):
        expected = hashlib.pbkdf2_hmac('sha512', 'tag'.encode('utf-8'), b'iv', 1000, 16)

        self.assertEqual(derive('tag', IV_LABEL, 1000, 16), expected)

    def test_deterministic(self):
        """Same inputs always give the same output."""
        first = derive(SECRET, KEY_LABEL, 500, 32)
        second = derive(SECRET, KEY_LABEL, 500, 32)

        self.assertEqual(first, second)
        self.assertEqual(len(first), 32)

    def test_labels_separate_domains(self):
        """Key and IV derivation from the same string differ."""
        key = derive(SECRET, KEY_LABEL, 500, 16)
        iv = derive(SECRET, IV_LABEL, 500, 16)

        self.assertNotEqual(key, iv)

    def test_iterations_change_output(self):
        self.assertNotEqual(
            derive(SECRET, KEY_LABEL, 500, 32),
            derive(SECRET, KEY_LABEL, 501, 32),
        )

    def test_non_ascii_secret(self):
        """Secrets are encoded as UTF-8."""
        secret = 'Schlüssel 你好 🌍'
        expected = hashlib.pbkdf2_hmac('sha512', secret.encode('utf-8'), b'DatabaseKey', 100, 32)

        self.assertEqual(derive(secret, KEY_LABEL, 100, 32), expected)

    def test_rejects_non_positive_iterations(self):
        for iterations in (0, -1, -10000):
            with self.subTest(iterations=iterations):
                with self.assertRaises(ConfigurationError):
                    derive(SECRET, KEY_LABEL, iterations, 32)

    def test_rejects_non_integer_iterations(self):
        for iterations in (1.5, '1000', None, True):
            with self.subTest(iterations=iterations):
                with self.assertRaises(ConfigurationError):
                    derive(SECRET, KEY_LABEL, iterations, 32)

    def test_single_iteration_allowed(self):
        self.assertEqual(len(derive(SECRET, KEY_LABEL, 1, 32)), 32)


class ScopedMaterialTests(SimpleTestCase):
    """Test that derived material is wiped after use."""

    def test_wiped_after_block(self):
        with scoped_key(SECRET, 100) as key:
            self.assertEqual(bytes(key), derive(SECRET, KEY_LABEL, 100, KEY_SIZE))
            captured = key

        self.assertEqual(bytes(captured), bytes(KEY_SIZE))

    def test_wiped_on_error(self):
        with self.assertRaises(RuntimeError):
            with scoped_material(SECRET, IV_LABEL, 100, 16) as material:
                captured = material
                raise RuntimeError("boom")

        self.assertEqual(bytes(captured), bytes(16))
