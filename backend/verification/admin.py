from django.contrib import admin
from .models import Device, KeyVerification


@admin.register(Device)
class DeviceAdmin(admin.ModelAdmin):
    list_display = ['label', 'user', 'fingerprint', 'created_at']
    search_fields = ['label', 'fingerprint', 'user__username']
    readonly_fields = ['fingerprint', 'public_key_armored']


@admin.register(KeyVerification)
class KeyVerificationAdmin(admin.ModelAdmin):
    list_display = ['verifier', 'verifier_device', 'target_fpr', 'method', 'verified_at']
    list_filter = ['method']
    search_fields = ['verifier__username', 'target_fpr']
    readonly_fields = ['verifier', 'verifier_device', 'target_fpr', 'method', 'verified_at']
