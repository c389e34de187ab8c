from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Device',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('label', models.CharField(max_length=100)),
                ('fingerprint', models.CharField(help_text='Canonical public key fingerprint, as produced by key management', max_length=128, unique=True)),
                ('public_key_armored', models.TextField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='devices', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'devices',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='KeyVerification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('target_fpr', models.CharField(db_index=True, max_length=128)),
                ('method', models.CharField(choices=[('qr', 'QR code'), ('sas', 'Short authentication string')], max_length=3)),
                ('verified_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('verifier', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='key_verifications', to=settings.AUTH_USER_MODEL)),
                ('verifier_device', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='verifications_made', to='verification.device')),
            ],
            options={
                'db_table': 'key_verifications',
                'ordering': ['-verified_at'],
                'unique_together': {('verifier_device', 'target_fpr')},
            },
        ),
    ]
