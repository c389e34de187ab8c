from django.db import models
from django.conf import settings
from django.utils import timezone


class Device(models.Model):
    """A user's device identity, as supplied by the client's key store"""
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='devices'
    )
    label = models.CharField(max_length=100)
    fingerprint = models.CharField(
        max_length=128,
        unique=True,
        help_text='Canonical public key fingerprint, as produced by key management'
    )
    public_key_armored = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'devices'
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.label} ({self.fingerprint[:16]}) of {self.user}'


class KeyVerification(models.Model):
    """Outcome of a completed out-of-band verification (QR scan or SAS compare)"""

    class Method(models.TextChoices):
        QR = 'qr', 'QR code'
        SAS = 'sas', 'Short authentication string'

    verifier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='key_verifications'
    )
    verifier_device = models.ForeignKey(
        Device,
        on_delete=models.CASCADE,
        related_name='verifications_made'
    )
    target_fpr = models.CharField(max_length=128, db_index=True)
    method = models.CharField(max_length=3, choices=Method.choices)
    verified_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'key_verifications'
        ordering = ['-verified_at']
        unique_together = ['verifier_device', 'target_fpr']

    def __str__(self):
        return f'{self.verifier_device.label} verified {self.target_fpr[:16]} via {self.method}'
