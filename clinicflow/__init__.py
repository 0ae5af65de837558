"""Django project for the clinic patient-flow service."""
