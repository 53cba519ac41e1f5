"""Main settings file for the file vault project.

Settings are split into components under ``server/settings/components``
and composed with ``django-split-settings``. Values that differ between
environments are read from the environment (or ``config/.env``) via
``python-decouple``.
"""

import django_stubs_ext
from split_settings.tools import include

# Monkeypatching Django, so stubs will work for all generics,
# see: https://github.com/typeddjango/django-stubs
django_stubs_ext.monkeypatch()

include(
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/files.py',
)
