# apps/academics/migrations/0002_progress_and_criteria.py

import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    dependencies = [
        ('academics', '0001_initial'),
        ('students', '0001_initial'),
        ('promotions', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='AcademicProgress',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('average_grade', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)], verbose_name='Average Grade (%)')),
                ('total_school_days', models.PositiveIntegerField(default=0, verbose_name='Total School Days')),
                ('days_attended', models.PositiveIntegerField(default=0, verbose_name='Days Attended')),
                ('subjects_failed', models.PositiveIntegerField(default=0, verbose_name='Subjects Failed')),
                ('academic_year', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='student_progress', to='academics.academicyear', verbose_name='Academic Year')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='academic_progress', to='students.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Academic Progress',
                'verbose_name_plural': 'Academic Progress Records',
            },
        ),
        migrations.AddConstraint(
            model_name='academicprogress',
            constraint=models.UniqueConstraint(fields=('student', 'academic_year'), name='unique_progress_per_year'),
        ),
        migrations.AddField(
            model_name='classprogression',
            name='criteria',
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='progressions', to='promotions.promotioncriteria', verbose_name='Promotion Criteria'),
        ),
    ]
