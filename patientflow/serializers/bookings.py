import bleach
from rest_framework import serializers

from ..models import RoomBooking

BOOKING_STATUS_CHOICES = [s for s, _ in RoomBooking.STATUS_CHOICES]


class RoomRequestSerializer(serializers.Serializer):
    """Room, day and times; used alone by the book-room endpoint."""
    roomName = serializers.CharField(max_length=100)
    roomType = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    bookingDate = serializers.DateField()
    startTime = serializers.TimeField()
    endTime = serializers.TimeField()
    equipmentRequired = serializers.ListField(
        child=serializers.CharField(max_length=100), required=False, allow_empty=True,
    )
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)

    def validate_roomName(self, v):
        return v.strip()

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def to_room_request(self) -> dict:
        d = self.validated_data
        return {
            'room_name': d['roomName'],
            'room_type': d.get('roomType') or None,
            'booking_date': d['bookingDate'],
            'start_time': d['startTime'],
            'end_time': d['endTime'],
            'equipment_required': d.get('equipmentRequired') or [],
            'notes': d.get('notes'),
        }


class BookingCreateSerializer(RoomRequestSerializer):
    appointmentId = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)


class BookingUpdateSerializer(serializers.Serializer):
    roomName = serializers.CharField(max_length=100, required=False)
    roomType = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    bookingDate = serializers.DateField(required=False)
    startTime = serializers.TimeField(required=False)
    endTime = serializers.TimeField(required=False)
    status = serializers.ChoiceField(choices=BOOKING_STATUS_CHOICES, required=False)
    appointmentId = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)
    equipmentRequired = serializers.ListField(
        child=serializers.CharField(max_length=100), required=False, allow_empty=True,
    )
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True)

    FIELD_MAP = {
        'roomName': 'room_name',
        'roomType': 'room_type',
        'bookingDate': 'booking_date',
        'startTime': 'start_time',
        'endTime': 'end_time',
        'status': 'status',
        'appointmentId': 'appointment_id',
        'equipmentRequired': 'equipment_required',
        'notes': 'notes',
    }

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('nothing to update')
        return attrs

    def to_patch(self) -> dict:
        return {self.FIELD_MAP[k]: v for k, v in self.validated_data.items()}


class BookingListQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    roomName = serializers.CharField(max_length=100, required=False)
    includeCancelled = serializers.BooleanField(required=False, default=True)


class AvailabilityQuerySerializer(serializers.Serializer):
    rooms = serializers.CharField(max_length=2000, help_text='comma separated room names')
    date = serializers.DateField(required=False)
    at = serializers.TimeField(required=False)

    def room_list(self) -> list[str]:
        return [r.strip() for r in self.validated_data['rooms'].split(',') if r.strip()]
