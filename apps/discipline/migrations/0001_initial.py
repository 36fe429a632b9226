# apps/discipline/migrations/0001_initial.py

from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('academics', '0001_initial'),
        ('students', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='DisciplinaryRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('incident_date', models.DateField(db_index=True, verbose_name='Incident Date')),
                ('incident_type', models.CharField(max_length=100, verbose_name='Incident Type')),
                ('severity_level', models.CharField(choices=[('minor', 'Minor'), ('moderate', 'Moderate'), ('major', 'Major'), ('severe', 'Severe')], default='minor', max_length=20, verbose_name='Severity Level')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('record_status', models.CharField(choices=[('reported', 'Reported'), ('investigating', 'Under Investigation'), ('action_taken', 'Action Taken'), ('resolved', 'Resolved'), ('dismissed', 'Dismissed')], default='reported', max_length=20, verbose_name='Record Status')),
                ('is_resolved', models.BooleanField(db_index=True, default=False, verbose_name='Is Resolved')),
                ('academic_year', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='disciplinary_records', to='academics.academicyear', verbose_name='Academic Year')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='disciplinary_records', to='students.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Disciplinary Record',
                'verbose_name_plural': 'Disciplinary Records',
                'ordering': ['-incident_date'],
                'indexes': [
                    models.Index(fields=['student', 'academic_year'], name='discipline_student_year_idx'),
                ],
            },
        ),
    ]
