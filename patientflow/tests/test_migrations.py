import pytest
from django.core.management import call_command


@pytest.mark.django_db
def test_models_match_migrations():
    # exits non-zero when models.py has changes no migration covers
    call_command('makemigrations', 'patientflow', '--check', '--dry-run', verbosity=0)
