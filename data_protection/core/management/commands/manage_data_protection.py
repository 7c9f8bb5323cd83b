"""
Management command for data protection configuration and testing.
"""

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from data_protection.core.encryption import DataProtectionError, get_protection_backend
from data_protection.core.encryption.config import SETTINGS_SECTION
from data_protection.core.encryption.utils import (
    audit_protection_usage,
    generate_secret,
    validate_protection_config,
)


class Command(BaseCommand):
    help = 'Manage column-level data protection'

    def add_arguments(self, parser):
        subparsers = parser.add_subparsers(
            dest='subcommand',
            help='Data protection subcommands'
        )

        # Test protection
        test_parser = subparsers.add_parser('test', help='Test protect/unprotect round trip')
        test_parser.add_argument(
            '--value',
            type=str,
            default='Hello, World!',
            help='Value to protect and unprotect'
        )
        test_parser.add_argument(
            '--searchable',
            type=str,
            default=None,
            help='Search tag of the field to simulate'
        )

        # Generate secret
        subparsers.add_parser('generate-secret', help='Generate a new DatabaseKey')

        # Validate config
        subparsers.add_parser('validate', help='Validate data protection configuration')

        # Audit usage
        subparsers.add_parser('audit', help='Audit protected fields in models')

        # Search term
        search_parser = subparsers.add_parser(
            'search-term',
            help='Print the stored form of a value for equality queries'
        )
        search_parser.add_argument('--value', type=str, required=True, help='Plaintext to look up')
        search_parser.add_argument(
            '--searchable',
            type=str,
            default=None,
            help='Search tag of the field'
        )

    def handle(self, *args, **options):
        subcommand = options.get('subcommand')

        if not subcommand:
            self.print_help('manage.py', 'manage_data_protection')
            return

        if subcommand == 'test':
            self.test_protection(options['value'], options['searchable'])
        elif subcommand == 'generate-secret':
            self.generate_secret()
        elif subcommand == 'validate':
            self.validate_config()
        elif subcommand == 'audit':
            self.audit_usage()
        elif subcommand == 'search-term':
            self.search_term(options['value'], options['searchable'])

    def test_protection(self, test_value, searchable):
        """Test protect and unprotect."""
        self.stdout.write(self.style.NOTICE(f"Testing data protection with value: {test_value}"))

        try:
            backend = get_protection_backend()

            protected = backend.protect(test_value, searchable)
            self.stdout.write(f"Protected: {protected[:50]}..." if len(protected) > 50 else f"Protected: {protected}")

            unprotected = backend.unprotect(protected, searchable)
            self.stdout.write(f"Unprotected: {unprotected}")

            if unprotected == test_value:
                self.stdout.write(self.style.SUCCESS("Round trip successful"))
            else:
                raise CommandError("Unprotected value doesn't match original")

            mode = 'deterministic' if backend.is_deterministic(searchable) else 'random'
            self.stdout.write(f"IV mode: {mode}")

        except DataProtectionError as e:
            raise CommandError(f"Data protection test failed: {str(e)}")

    def generate_secret(self):
        """Generate a new DatabaseKey."""
        self.stdout.write(self.style.NOTICE("Generating new DatabaseKey..."))

        secret = generate_secret()

        self.stdout.write(self.style.SUCCESS(f"Generated secret: {secret}"))
        self.stdout.write("\nAdd this to your settings:")
        self.stdout.write(f"{SETTINGS_SECTION} = {{'DatabaseKey': '{secret}'}}")

        self.stdout.write(self.style.WARNING("\nStore this secret securely!"))
        self.stdout.write("- Use environment variables in production")
        self.stdout.write("- Never commit secrets to version control")
        self.stdout.write("- Never change it once data has been written")

    def validate_config(self):
        """Validate data protection configuration."""
        self.stdout.write(self.style.NOTICE("Validating data protection configuration..."))

        try:
            config = validate_protection_config()
        except DataProtectionError as e:
            self.stdout.write(self.style.ERROR(f"Configuration invalid: {str(e)}"))
            raise CommandError("Please fix the configuration errors above")

        self.stdout.write(self.style.SUCCESS("Configuration is valid"))

        self.stdout.write("\nCurrent configuration:")
        self.stdout.write(f"  Environment: {settings.DEBUG and 'Development' or 'Production'}")
        self.stdout.write("  DatabaseKey: Configured")
        if config.uses_random_iv:
            self.stdout.write("  InitialisationVector: Not set (random IV per value)")
        else:
            self.stdout.write("  InitialisationVector: Configured (deterministic)")
        self.stdout.write(f"  Iterations: {config.iterations}")

    def audit_usage(self):
        """Audit protected fields across models."""
        self.stdout.write(self.style.NOTICE("Auditing data protection usage..."))

        stats = audit_protection_usage()

        self.stdout.write("\nData Protection Usage Summary:")
        self.stdout.write(f"  Total models: {stats['total_models']}")
        self.stdout.write(f"  Models with protected fields: {stats['protected_models']}")
        self.stdout.write(f"  Protected fields: {stats['protected_fields']}")
        self.stdout.write(f"  Searchable fields: {stats['searchable_fields']}")

        if stats['models']:
            self.stdout.write("\nModels with protected fields:")
            for model_info in stats['models']:
                self.stdout.write(
                    f"\n  {model_info['app_label']}.{model_info['model_name']}:"
                )
                for field in model_info['protected_fields']:
                    searchable = "searchable" if field['searchable'] else "not searchable"
                    self.stdout.write(f"    - {field['name']} ({searchable})")

    def search_term(self, value, searchable):
        """Print the ciphertext a searchable field stores for ``value``."""
        try:
            backend = get_protection_backend()
        except DataProtectionError as e:
            raise CommandError(f"Data protection is not configured: {str(e)}")

        if not backend.is_deterministic(searchable):
            raise CommandError(
                "Values use a random IV; pass --searchable or configure "
                "InitialisationVector to get a searchable form"
            )

        self.stdout.write(backend.protect(value, searchable))
