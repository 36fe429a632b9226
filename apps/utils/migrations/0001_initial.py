# apps/utils/migrations/0001_initial.py

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='FinancialAuditLog',
            fields=[
                ('id', models.AutoField(primary_key=True, serialize=False)),
                ('timestamp', models.DateTimeField(db_index=True, verbose_name='Timestamp')),
                ('action', models.CharField(choices=[('FEE_STRUCTURE_CREATE', 'Fee Structure Created'), ('PAYMENT_RECEIVE', 'Payment Received'), ('OVERPAYMENT_RECORD', 'Overpayment Recorded'), ('YEAR_CLOSE', 'Academic Year Closed'), ('BALANCE_CARRY_FORWARD', 'Balance Carried Forward'), ('STUDENT_PROMOTE', 'Student Promoted'), ('STUDENT_GRADUATE', 'Student Graduated')], db_index=True, max_length=30)),
                ('user_id', models.CharField(blank=True, db_index=True, max_length=50, null=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('object_type', models.CharField(blank=True, max_length=100, null=True)),
                ('object_id', models.CharField(blank=True, max_length=100, null=True)),
                ('amount_involved', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('currency', models.CharField(blank=True, max_length=3, null=True)),
                ('student_id', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('student_name', models.CharField(blank=True, max_length=200, null=True)),
                ('risk_level', models.CharField(choices=[('LOW', 'Low'), ('MEDIUM', 'Medium'), ('HIGH', 'High')], default='LOW', max_length=10)),
                ('additional_data', models.JSONField(blank=True, default=dict)),
                ('notes', models.TextField(blank=True, null=True)),
                ('is_automated', models.BooleanField(default=False)),
                ('batch_id', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
            ],
            options={
                'verbose_name': 'Financial Audit Log',
                'verbose_name_plural': 'Financial Audit Logs',
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['timestamp', 'action'], name='audit_timestamp_action_idx'),
                    models.Index(fields=['student_id', 'timestamp'], name='audit_student_timestamp_idx'),
                ],
            },
        ),
    ]
