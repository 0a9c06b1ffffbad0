from rest_framework import serializers

from portal.models import Doctor, Profile


class DoctorListQuerySerializer(serializers.Serializer):
    specialty = serializers.ChoiceField(choices=Doctor.SPECIALTY_CHOICES, required=False)
    q = serializers.CharField(required=False, allow_blank=True, max_length=100)


class AdminDoctorQuerySerializer(serializers.Serializer):
    state = serializers.ChoiceField(choices=['pending', 'verified', 'rejected'], required=False)


class DoctorUpdateSerializer(serializers.Serializer):
    bio = serializers.CharField(required=False, allow_blank=True, max_length=4000)
    availability = serializers.JSONField(required=False)
    qualification = serializers.CharField(required=False, max_length=255)


class VerifySerializer(serializers.Serializer):
    approved = serializers.BooleanField()


class RoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=Profile.ROLE_CHOICES)


class AdminEmailSerializer(serializers.Serializer):
    email = serializers.CharField(max_length=254)


class RecordCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    file = serializers.FileField(required=False, allow_null=True)
