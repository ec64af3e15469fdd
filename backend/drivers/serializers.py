from rest_framework import serializers
from drivers.models import DriverProfile
from accounts.serializers import UserSerializer


class DriverProfileSerializer(serializers.ModelSerializer):
    """
    Full driver profile serializer
    """
    user = UserSerializer(read_only=True)

    class Meta:
        model = DriverProfile
        fields = [
            "id",
            "user",
            "status",
            "is_online",
            "is_approved",
            "onboarding_completed",
            "rating",
            "current_latitude",
            "current_longitude",
            "last_location_update",
        ]
        read_only_fields = fields


class DriverOnlineSerializer(serializers.Serializer):
    """
    Serializer for going online/offline.
    """
    is_online = serializers.BooleanField()


class LocationUpdateSerializer(serializers.Serializer):
    """
    Serializer for updating driver GPS location.
    """
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180)
