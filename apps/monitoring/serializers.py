from django.core.validators import MinValueValidator, MaxValueValidator
from rest_framework import serializers

from .devices import DEVICE_TYPES
from .roster import STATUSES


class TrackedPersonSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64, required=False, allow_blank=True)
    name = serializers.CharField(max_length=150)
    group = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    section = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    contact = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    locator_device = serializers.CharField(
        max_length=64, required=False, allow_blank=True, default='',
        help_text="GPS device id. People without one are never moved by the simulator."
    )
    tag_device = serializers.CharField(max_length=64, required=False, allow_blank=True, default='',
                                       help_text="RFID tag id.")
    latitude = serializers.FloatField(
        required=False, allow_null=True, default=None,
        validators=[MinValueValidator(-90.0), MaxValueValidator(90.0)],
        help_text="Optional. Scattered around the campus centre when omitted."
    )
    longitude = serializers.FloatField(
        required=False, allow_null=True, default=None,
        validators=[MinValueValidator(-180.0), MaxValueValidator(180.0)]
    )


class TrackedPersonUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150, required=False)
    group = serializers.CharField(max_length=100, required=False, allow_blank=True)
    section = serializers.CharField(max_length=50, required=False, allow_blank=True)
    contact = serializers.CharField(max_length=100, required=False, allow_blank=True)
    locator_device = serializers.CharField(max_length=64, required=False, allow_blank=True)
    tag_device = serializers.CharField(max_length=64, required=False, allow_blank=True)
    latitude = serializers.FloatField(required=False, validators=[MinValueValidator(-90.0), MaxValueValidator(90.0)])
    longitude = serializers.FloatField(required=False, validators=[MinValueValidator(-180.0), MaxValueValidator(180.0)])
    status = serializers.ChoiceField(choices=STATUSES, required=False)


class SampleGenerationSerializer(serializers.Serializer):
    count = serializers.IntegerField(required=False, default=120, min_value=1, max_value=1000)


class DeviceRegistrationSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    type = serializers.ChoiceField(choices=DEVICE_TYPES)
    assigned_to = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)

    def validate_id(self, value):
        if not value.strip():
            raise serializers.ValidationError("Device id cannot be empty.")
        return value.strip()


class SensorReadingSerializer(serializers.Serializer):
    device_id = serializers.CharField(max_length=64)
    latitude = serializers.FloatField(validators=[MinValueValidator(-90.0), MaxValueValidator(90.0)])
    longitude = serializers.FloatField(validators=[MinValueValidator(-180.0), MaxValueValidator(180.0)])
    emergency = serializers.BooleanField(required=False, default=False)


class AcknowledgeAlertSerializer(serializers.Serializer):
    alert_id = serializers.CharField(
        max_length=64, required=False, allow_null=True, default=None,
        help_text="Optional. The id the client saw at this index; a mismatch makes the call a no-op."
    )


class RaiseAlertSerializer(serializers.Serializer):
    person_id = serializers.CharField(max_length=64)


class CampusSettingsSerializer(serializers.Serializer):
    school_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    latitude = serializers.FloatField(required=False, validators=[MinValueValidator(-90.0), MaxValueValidator(90.0)])
    longitude = serializers.FloatField(required=False, validators=[MinValueValidator(-180.0), MaxValueValidator(180.0)])
    zoom = serializers.IntegerField(required=False, min_value=1, max_value=20)
    audio_enabled = serializers.BooleanField(required=False)


class ErrorResponseSerializer(serializers.Serializer):
    error = serializers.CharField()
