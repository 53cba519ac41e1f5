"""Logging configuration.

Every module logs through ``logging.getLogger(__name__)``, so the
``server`` logger covers all project code. Its records propagate to
the root handler.
"""

from typing import Any, Final

from server.settings.components import config

_LOG_LEVEL: Final = config('DJANGO_LOG_LEVEL', default='INFO')

LOGGING: Final[dict[str, Any]] = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'console': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'console',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'server': {
            'level': _LOG_LEVEL,
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
}
