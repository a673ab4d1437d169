"""
pytest bootstrap: configure Django before test modules are imported.

The test suite also runs with `python manage.py test`.
"""

import os

import django
from django.test.utils import setup_test_environment

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings")
django.setup()
setup_test_environment()
