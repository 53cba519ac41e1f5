import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='FileRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('display_name', models.CharField(help_text='Original filename as uploaded', max_length=255)),
                ('size_bytes', models.BigIntegerField(help_text='Size of the content at the last upload')),
                ('content_type', models.CharField(help_text='MIME type reported at upload time', max_length=255)),
                ('blob_key', models.CharField(editable=False, help_text='Key in storage: {owner_id}/{hex}.ext', max_length=512, unique=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='file_records', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'File record',
                'verbose_name_plural': 'File records',
                'ordering': ['-created_at', 'id'],
                'indexes': [models.Index(fields=['owner', '-created_at'], name='files_owner_recent_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(('size_bytes__gte', 0)), name='file_size_non_negative')],
            },
        ),
    ]
