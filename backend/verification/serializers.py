from django.utils import timezone
from rest_framework import serializers
from .models import Device, KeyVerification


class DeviceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Device
        fields = ['id', 'label', 'fingerprint', 'public_key_armored', 'created_at']
        read_only_fields = ['id', 'created_at']

    def create(self, validated_data):
        validated_data['user'] = self.context['request'].user
        return super().create(validated_data)


class ScanSerializer(serializers.Serializer):
    qr_data = serializers.CharField(trim_whitespace=False)
    device_id = serializers.IntegerField()


class SASRequestSerializer(serializers.Serializer):
    fingerprint_a = serializers.CharField()
    fingerprint_b = serializers.CharField()


class KeyVerificationSerializer(serializers.ModelSerializer):
    device_id = serializers.IntegerField(write_only=True)
    verifier_device_label = serializers.CharField(source='verifier_device.label', read_only=True)

    class Meta:
        model = KeyVerification
        fields = ['id', 'device_id', 'verifier_device', 'verifier_device_label',
                  'target_fpr', 'method', 'verified_at']
        read_only_fields = ['id', 'verifier_device', 'verified_at']

    def validate(self, attrs):
        user = self.context['request'].user
        try:
            device = Device.objects.get(id=attrs.pop('device_id'), user=user)
        except Device.DoesNotExist:
            raise serializers.ValidationError({'device_id': 'Device not found.'})
        if device.fingerprint == attrs['target_fpr']:
            raise serializers.ValidationError({'target_fpr': 'Cannot verify your own device.'})
        attrs['verifier_device'] = device
        return attrs

    def create(self, validated_data):
        # Re-verifying the same key refreshes the record instead of duplicating it
        record, _ = KeyVerification.objects.update_or_create(
            verifier_device=validated_data['verifier_device'],
            target_fpr=validated_data['target_fpr'],
            defaults={
                'verifier': self.context['request'].user,
                'method': validated_data['method'],
                'verified_at': timezone.now(),
            }
        )
        return record
