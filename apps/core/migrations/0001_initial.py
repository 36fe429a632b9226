# apps/core/migrations/0001_initial.py

from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='School',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('code', models.CharField(help_text='Short unique code used to identify the school', max_length=30, unique=True, verbose_name='School Code')),
                ('name', models.CharField(max_length=200, verbose_name='School Name')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
            ],
            options={
                'verbose_name': 'School',
                'verbose_name_plural': 'Schools',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='FinancialSettings',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('currency', models.CharField(default='KES', help_text='Primary currency for this school (ISO 4217 code)', max_length=3, verbose_name='School Currency')),
                ('receipt_prefix', models.CharField(default='RCP', max_length=10, verbose_name='Receipt Prefix')),
                ('payment_prefix', models.CharField(default='PAY', max_length=10, verbose_name='Payment Reference Prefix')),
                ('include_year_in_numbers', models.BooleanField(default=True, help_text='Format numbers as PREFIX-YEAR-000001 instead of PREFIX-000001', verbose_name='Include Year in Numbers')),
                ('school', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='financial_settings', to='core.school', verbose_name='School')),
            ],
            options={
                'verbose_name': 'Financial Settings',
                'verbose_name_plural': 'Financial Settings',
            },
        ),
    ]
