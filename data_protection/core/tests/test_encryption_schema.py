"""
Tests for the explicit field registry and the value converter.
"""

from django.test import SimpleTestCase

from data_protection.core.encryption.backends import DataProtectionBackend, protect
from data_protection.core.encryption.config import DataProtectionConfiguration
from data_protection.core.encryption.exceptions import DataProtectionError
from data_protection.core.encryption.schema import (
    FieldProtection,
    ProtectedValueConverter,
    ProtectionSchema,
    field_id,
)

SECRET = 'q45knelfjasldfkjaherltkqu43lq345asdf5'


class ProtectionSchemaTests(SimpleTestCase):
    """Test building and reading the registry."""

    def setUp(self):
        self.schema = ProtectionSchema.from_mapping({
            'crm.Customer.name': True,
            'crm.Customer.email': 'customer-email',
            'crm.Customer.notes': FieldProtection(),
            'crm.Customer.phone': (True, 'customer-phone'),
            'crm.Customer.country': False,
            'crm.Customer.city': (True, ''),
        })

    def test_coercion(self):
        self.assertEqual(self.schema.get('crm.Customer.name'), FieldProtection())
        self.assertEqual(self.schema.get('crm.Customer.email'), FieldProtection(search_tag='customer-email'))
        self.assertEqual(self.schema.get('crm.Customer.phone').search_tag, 'customer-phone')
        self.assertFalse(self.schema.get('crm.Customer.country').protected)
        self.assertIsNone(self.schema.get('crm.Customer.city').search_tag)

    def test_unknown_field_is_unprotected(self):
        protection = self.schema.get('crm.Customer.id')

        self.assertFalse(protection.protected)
        self.assertNotIn('crm.Customer.id', self.schema)

    def test_listings(self):
        self.assertEqual(
            sorted(self.schema.protected_fields()),
            ['crm.Customer.city', 'crm.Customer.email', 'crm.Customer.name',
             'crm.Customer.notes', 'crm.Customer.phone'],
        )
        self.assertEqual(
            sorted(self.schema.searchable_fields()),
            ['crm.Customer.email', 'crm.Customer.phone'],
        )
        self.assertEqual(len(self.schema), 6)

    def test_read_only(self):
        with self.assertRaises(TypeError):
            self.schema._fields['crm.Customer.name'] = FieldProtection(protected=False)

    def test_with_field_returns_new_schema(self):
        extended = self.schema.with_field('crm.Customer.iban', FieldProtection())

        self.assertIn('crm.Customer.iban', extended)
        self.assertNotIn('crm.Customer.iban', self.schema)

    def test_invalid_value(self):
        with self.assertRaises(TypeError):
            ProtectionSchema.from_mapping({'crm.Customer.name': 42})

    def test_field_id(self):
        self.assertEqual(field_id('crm', 'Customer', 'email'), 'crm.Customer.email')

    def test_unprotected_tag_is_not_searchable(self):
        self.assertFalse(FieldProtection(protected=False, search_tag='x').searchable)


class ProtectedValueConverterTests(SimpleTestCase):
    """Test column conversion driven by the registry."""

    def setUp(self):
        self.config = DataProtectionConfiguration(database_key=SECRET, iterations=1000)
        self.schema = ProtectionSchema.from_mapping({
            'crm.Customer.name': True,
            'crm.Customer.email': 'customer-email',
            'crm.Customer.country': False,
        })
        self.converter = ProtectedValueConverter(self.config, self.schema)

    def test_accepts_backend(self):
        converter = ProtectedValueConverter(DataProtectionBackend(self.config), self.schema)
        self.assertIs(converter.backend.config, self.config)

    def test_protected_round_trip(self):
        stored = self.converter.to_storage('crm.Customer.name', 'Alice Smith')

        self.assertNotEqual(stored, 'Alice Smith')
        self.assertEqual(self.converter.from_storage('crm.Customer.name', stored), 'Alice Smith')

    def test_searchable_uses_tag(self):
        stored = self.converter.to_storage('crm.Customer.email', 'alice@example.com')

        self.assertEqual(stored, protect(self.config, 'alice@example.com', 'customer-email'))
        self.assertEqual(stored, self.converter.to_storage('crm.Customer.email', 'alice@example.com'))

    def test_unprotected_passthrough(self):
        self.assertEqual(self.converter.to_storage('crm.Customer.country', 'DE'), 'DE')
        self.assertEqual(self.converter.from_storage('crm.Customer.country', 'DE'), 'DE')
        self.assertEqual(self.converter.to_storage('crm.Customer.id', 7), 7)

    def test_null_passthrough(self):
        self.assertIsNone(self.converter.to_storage('crm.Customer.name', None))
        self.assertIsNone(self.converter.from_storage('crm.Customer.name', None))

    def test_non_text_rejected(self):
        with self.assertRaises(TypeError):
            self.converter.to_storage('crm.Customer.name', 42)

    def test_tag_mismatch_fails(self):
        """Reading a searchable column as random-IV fails instead of guessing."""
        stored = self.converter.to_storage('crm.Customer.email', 'bob')
        other = ProtectedValueConverter(
            self.config, ProtectionSchema.from_mapping({'crm.Customer.email': True})
        )

        with self.assertRaises(DataProtectionError):
            other.from_storage('crm.Customer.email', stored)

    def test_rows(self):
        row = {'name': 'Alice Smith', 'email': 'alice@example.com', 'country': 'DE'}

        stored = self.converter.row_to_storage('crm.Customer', row)

        self.assertEqual(stored['country'], 'DE')
        self.assertNotEqual(stored['name'], 'Alice Smith')
        self.assertEqual(self.converter.row_from_storage('crm.Customer', stored), row)
