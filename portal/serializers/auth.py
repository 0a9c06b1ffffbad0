import bleach
from rest_framework import serializers

from portal.models import Doctor, Profile


class SignInSerializer(serializers.Serializer):
    email = serializers.CharField()
    password = serializers.CharField()

    def validate_email(self, v):
        v = (v or '').strip().lower()
        if not v:
            raise serializers.ValidationError('email may not be empty')
        return v

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('password may not be empty')
        return v


class SignUpSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=254)
    password = serializers.CharField(write_only=True)
    confirmPassword = serializers.CharField(write_only=True)
    firstName = serializers.CharField(max_length=150)
    lastName = serializers.CharField(max_length=150)
    role = serializers.ChoiceField(choices=Profile.ROLE_CHOICES, default=Profile.ROLE_PATIENT)
    qualification = serializers.CharField(required=False, allow_blank=True, max_length=255)
    specialty = serializers.ChoiceField(choices=Doctor.SPECIALTY_CHOICES, required=False, allow_null=True)
    experienceYears = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=80)

    def validate_firstName(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('first name is required')
        return v

    def validate_lastName(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('last name is required')
        return v

    def validate(self, attrs):
        if attrs['password'] != attrs['confirmPassword']:
            raise serializers.ValidationError({'confirmPassword': 'passwords do not match'})
        if attrs.get('role') == Profile.ROLE_DOCTOR:
            missing = {k: 'required for doctors' for k in ('qualification', 'specialty', 'experienceYears')
                       if attrs.get(k) in (None, '')}
            if missing:
                raise serializers.ValidationError(missing)
        return attrs


class ProfileUpdateSerializer(serializers.Serializer):
    """Only names and phone are writable; anything else in the payload is dropped."""
    firstName = serializers.CharField(required=False, max_length=150)
    lastName = serializers.CharField(required=False, max_length=150)
    phone = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=32)

    def to_fields(self) -> dict:
        vd = self.validated_data
        mapping = {'firstName': 'first_name', 'lastName': 'last_name', 'phone': 'phone'}
        return {mapping[k]: v for k, v in vd.items() if k in mapping}
