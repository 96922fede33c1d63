import json

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Setting, AuditLog

User = get_user_model()

# Setting keys whose value must be a JSON document
JSON_SETTING_KEYS = {'GRADE_SIZE_PROFILES', 'GRADE_DEFAULT_SIZES'}


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'is_staff']
        read_only_fields = ['id', 'is_staff']


class SettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Setting
        fields = ['id', 'key', 'value', 'description', 'updated_at']

    def validate(self, attrs):
        key = attrs.get('key', getattr(self.instance, 'key', None))
        value = attrs.get('value', getattr(self.instance, 'value', None))
        if key in JSON_SETTING_KEYS:
            try:
                json.loads(value)
            except (TypeError, ValueError):
                raise serializers.ValidationError({'value': f'{key} must be valid JSON.'})
        return attrs


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']
