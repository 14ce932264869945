import bleach
from rest_framework import serializers


class CampaignListQuerySerializer(serializers.Serializer):
    audience = serializers.ChoiceField(choices=['all', 'patients', 'doctors'], required=False, default='all')
    hospitalId = serializers.CharField(max_length=64, required=False, allow_blank=True)


class CampaignWriteSerializer(serializers.Serializer):
    """Create/update payload; ``content`` is sanitized again by the service."""
    id = serializers.IntegerField(min_value=1, required=False)
    title = serializers.CharField(max_length=200, required=False)
    slug = serializers.CharField(max_length=220, required=False, allow_blank=True)
    content = serializers.CharField(required=False, allow_blank=True)
    imageUrl = serializers.URLField(required=False, allow_blank=True)
    ctaText = serializers.CharField(max_length=64, required=False, allow_blank=True)
    ctaHref = serializers.CharField(max_length=500, required=False, allow_blank=True)
    audience = serializers.ChoiceField(choices=['all', 'patients', 'doctors'], required=False)
    status = serializers.ChoiceField(choices=['draft', 'published', 'archived'], required=False)
    priority = serializers.IntegerField(required=False)
    startAt = serializers.DateTimeField(required=False, allow_null=True)
    endAt = serializers.DateTimeField(required=False, allow_null=True)
    hospitalId = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)

    def validate_title(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('Title is required')
        return v

    def validate(self, attrs):
        if attrs.get('startAt') and attrs.get('endAt') and attrs['endAt'] < attrs['startAt']:
            raise serializers.ValidationError('endAt must be after startAt')
        return attrs


class CampaignIdSerializer(serializers.Serializer):
    id = serializers.IntegerField(min_value=1)
