import bleach
from rest_framework import serializers

from ..models import VisitQueueEntry

STATUS_CHOICES = [s for s, _ in VisitQueueEntry.STATUS_CHOICES]


def clean_text(v):
    return bleach.clean((v or '').strip(), strip=True)


class CheckInSerializer(serializers.Serializer):
    patientId = serializers.CharField(max_length=64)
    department = serializers.CharField(max_length=100)
    priority = serializers.IntegerField(required=False, allow_null=True)
    serviceType = serializers.CharField(max_length=100, required=False, allow_blank=True)
    appointmentId = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)

    def validate_patientId(self, v):
        return v.strip()

    def validate_notes(self, v):
        return clean_text(v)


class QueueListQuerySerializer(serializers.Serializer):
    department = serializers.CharField(max_length=100, required=False)
    status = serializers.ChoiceField(choices=STATUS_CHOICES, required=False)
    date = serializers.DateField(required=False)


class DepartmentQuerySerializer(serializers.Serializer):
    department = serializers.CharField(max_length=100)


class StatsQuerySerializer(serializers.Serializer):
    department = serializers.CharField(max_length=100, required=False)
    date = serializers.DateField(required=False)


class CallNextSerializer(serializers.Serializer):
    department = serializers.CharField(max_length=100)
    roomNumber = serializers.CharField(max_length=50, required=False, allow_blank=True)
    candidateRooms = serializers.ListField(
        child=serializers.CharField(max_length=100), required=False, allow_empty=True,
    )


class StatusUpdateSerializer(serializers.Serializer):
    # free text; unknown statuses are rejected by the store
    status = serializers.CharField(max_length=20)
    roomNumber = serializers.CharField(max_length=50, required=False, allow_blank=True)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate_reason(self, v):
        return clean_text(v)


class StageUpdateSerializer(serializers.Serializer):
    stage = serializers.CharField(max_length=32)
    roomNumber = serializers.CharField(max_length=50, required=False, allow_blank=True)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate_reason(self, v):
        return clean_text(v)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate_reason(self, v):
        return clean_text(v)
