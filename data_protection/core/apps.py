"""
Data Protection App Configuration
"""
import logging

from django.apps import AppConfig
from django.conf import settings
from django.core.signals import setting_changed

from .encryption.config import SETTINGS_SECTION

logger = logging.getLogger(__name__)


def _reset_backend_on_change(setting, **kwargs):
    if setting == SETTINGS_SECTION:
        from .encryption.backends import reset_protection_backend
        reset_protection_backend()


class CoreConfig(AppConfig):
    """Configuration for the data protection app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'data_protection.core'
    label = 'core'
    verbose_name = 'Data Protection'

    def ready(self):
        """Validate the configuration so that errors surface at startup."""
        setting_changed.connect(_reset_backend_on_change)

        if getattr(settings, SETTINGS_SECTION, None) is None:
            logger.warning(
                f"{SETTINGS_SECTION} is not configured; protected fields will "
                f"fail on first use"
            )
            return

        from .encryption.utils import validate_protection_config
        config = validate_protection_config()
        logger.info(
            f"Data protection configured "
            f"({'random' if config.uses_random_iv else 'global'} IV, "
            f"{config.iterations} iterations)"
        )
