from rest_framework import serializers

from portal.models import Appointment


class AppointmentListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Appointment.STATUS_CHOICES, required=False)


class AppointmentCreateSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField()
    patientId = serializers.IntegerField(required=False, allow_null=True)
    appointmentDate = serializers.DateTimeField()
    durationMinutes = serializers.IntegerField(required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)

    def validate_durationMinutes(self, v):
        if v is not None and v <= 0:
            raise serializers.ValidationError('duration must be positive')
        return v


class AppointmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Appointment.STATUS_CHOICES)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)
    appointmentDate = serializers.DateTimeField(required=False, allow_null=True)


class AppointmentUpdateSerializer(serializers.Serializer):
    appointmentDate = serializers.DateTimeField(required=False)
    durationMinutes = serializers.IntegerField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)

    def validate_durationMinutes(self, v):
        if v <= 0:
            raise serializers.ValidationError('duration must be positive')
        return v

    def to_fields(self) -> dict:
        mapping = {
            'appointmentDate': 'appointment_date',
            'durationMinutes': 'duration_minutes',
            'reason': 'reason',
            'notes': 'notes',
        }
        return {mapping[k]: v for k, v in self.validated_data.items()}
