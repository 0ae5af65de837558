from django.core.management.base import BaseCommand, CommandError

from patientflow.exceptions import NoCandidateError, PatientFlowError
from patientflow.services.orchestration import Orchestrator


class Command(BaseCommand):
    help = "Call the next waiting patient of a department (for schedulers and kiosks)."

    def add_arguments(self, parser):
        parser.add_argument('--tenant', required=True, help='tenant scope')
        parser.add_argument('--department', required=True)
        parser.add_argument('--room', help='room to send the patient to')
        parser.add_argument('--rooms', help='comma separated candidate rooms; the first free one is used')
        parser.add_argument('--actor', default='scheduler')

    def handle(self, *args, **options):
        rooms = [r.strip() for r in (options.get('rooms') or '').split(',') if r.strip()]
        try:
            entry = Orchestrator().call_next(
                options['tenant'],
                options['department'],
                options.get('room'),
                candidate_rooms=rooms or None,
                actor=options['actor'],
            )
        except NoCandidateError:
            self.stdout.write(f"No patients waiting in {options['department']}")
            return
        except PatientFlowError as e:
            raise CommandError(e.message)
        self.stdout.write(self.style.SUCCESS(
            f"Called #{entry.queue_number} ({entry.patient_id}) to {entry.room_number or '-'}"
        ))
